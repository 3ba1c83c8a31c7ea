DEFAULT_UNKNOWN = '?'


class SignatureError(ValueError):
    pass


class MaskLengthError(SignatureError):
    def __init__(self, pattern_length, mask_length):
        super().__init__("pattern size (%d) did not match mask size (%d)" % (pattern_length, mask_length))
        self.pattern_length = pattern_length
        self.mask_length = mask_length


class UnrepresentableSignatureError(SignatureError):
    pass


def _as_byte(value):
    if isinstance(value, str):
        if len(value) != 1:
            raise ValueError("expected a single character, got %r" % value)
        value = ord(value)
    elif isinstance(value, (bytes, bytearray)):
        if len(value) != 1:
            raise ValueError("expected a single byte, got %r" % value)
        value = value[0]
    if not 0 <= value <= 0xFF:
        raise ValueError("byte value out of range: %r" % value)
    return value


def _as_bytes(values):
    # One character per byte
    if isinstance(values, str):
        return values.encode('latin-1')
    return bytes(values)


def find_wildcard(pattern, known):
    """
    Returns the lowest byte value that does not occur at any known position.

    `known` runs parallel to `pattern`. A value stays used once any known
    position holds it, even if it also shows up at unknown positions.
    """
    used = [False] * 256

    for value, isKnown in zip(pattern, known):
        used[value] = used[value] or bool(isKnown)

    for i in range(256):
        if not used[i]:
            return i

    raise UnrepresentableSignatureError("unable to find unused byte in the provided pattern")


def find_wildcard_masked(pattern, mask, unknown):
    return find_wildcard(pattern, (m != unknown for m in mask))


class Signature:
    """
    Fixed length byte signature where one byte value acts as a wildcard.

    Any pattern byte equal to `wildcard` matches whatever byte is found at
    that position, including the wildcard value itself.
    """

    __slots__ = ('_pattern', '_wildcard', '_known', '_anchor')

    def __init__(self, pattern=b'', wildcard=0):
        self._pattern = _as_bytes(pattern)
        self._wildcard = _as_byte(wildcard)

        self._known = [(i, b) for i, b in enumerate(self._pattern) if b != self._wildcard]
        self._anchor = self._find_anchor()

    @classmethod
    def from_string(cls, pattern, wildcard):
        return cls(_as_bytes(pattern), wildcard)

    @classmethod
    def from_bytes(cls, pattern, wildcard):
        return cls(_as_bytes(pattern), wildcard)

    @classmethod
    def from_masked_string(cls, pattern, mask, unknown=DEFAULT_UNKNOWN):
        return cls._from_mask(pattern, mask, unknown)

    @classmethod
    def from_masked_bytes(cls, pattern, mask, unknown=ord(DEFAULT_UNKNOWN)):
        return cls._from_mask(pattern, mask, unknown)

    @classmethod
    def _from_mask(cls, pattern, mask, unknown):
        pattern = _as_bytes(pattern)
        mask = _as_bytes(mask)
        unknown = _as_byte(unknown)

        if len(pattern) != len(mask):
            raise MaskLengthError(len(pattern), len(mask))

        wildcard = find_wildcard_masked(pattern, mask, unknown)

        rewritten = bytes(wildcard if m == unknown else b for b, m in zip(pattern, mask))
        return cls(rewritten, wildcard)

    @property
    def pattern(self):
        return self._pattern

    @property
    def wildcard(self):
        return self._wildcard

    def __len__(self):
        return len(self._pattern)

    def __eq__(self, other):
        if not isinstance(other, Signature):
            return NotImplemented
        return self._pattern == other._pattern and self._wildcard == other._wildcard

    def __hash__(self):
        return hash((self._pattern, self._wildcard))

    def __repr__(self):
        return "Signature(%r, 0x%02X)" % (self._pattern, self._wildcard)

    def __str__(self):
        return " ".join("??" if b == self._wildcard else "%02X" % b for b in self._pattern)

    def _find_anchor(self):
        # Longest run of known bytes, ignoring all-00 and all-FF runs
        runs = []
        i = 0
        plen = len(self._pattern)
        while i < plen:
            if self._pattern[i] != self._wildcard:
                start = i
                while i < plen and self._pattern[i] != self._wildcard:
                    i += 1

                run = self._pattern[start:i]
                if not (all(b == 0x00 for b in run) or
                        all(b == 0xFF for b in run)):
                    runs.append((start, run))
            i += 1

        if not runs:
            return None

        return max(runs, key=lambda r: len(r[1]))

    def _matches(self, data, start):
        for i, b in self._known:
            if data[start + i] != b:
                return False
        return True

    def find(self, data, first=0, last=None):
        """
        Searches for the first occurrence of the signature in data[first:last].

        Returns the offset of the match, or `last` if there is no match or
        the signature is empty.
        """
        if last is None:
            last = len(data)

        if not self._pattern:
            return last

        plen = len(self._pattern)
        if last - first < plen:
            return last

        if self._anchor is not None and hasattr(data, 'find'):
            return self._find_anchored(data, first, last)

        for start in range(first, last - plen + 1):
            if self._matches(data, start):
                return start

        return last

    def _find_anchored(self, data, first, last):
        anchor_off, anchor_bytes = self._anchor

        # The anchor has to end inside the last possible window
        end = last - len(self._pattern) + anchor_off + len(anchor_bytes)

        pos = first + anchor_off
        while True:
            pos = data.find(anchor_bytes, pos, end)
            if pos == -1:
                return last

            start = pos - anchor_off
            if self._matches(data, start):
                return start

            pos += 1
