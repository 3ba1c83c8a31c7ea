import string

from signature import Signature


def parse_signature(sig):
    """
    Parses a text signature like "E9 ?? ?? ?? ?? 90" or "????0000".

    Returns the pattern bytes and a mask with 'x' for known and '?' for
    unknown bytes.
    """

    # ---- split into byte tokens (spaces are optional) ----
    tokens = []
    for word in sig.split():
        if word == "?":
            tokens.append("??")
            continue
        if len(word) % 2 != 0:
            raise ValueError("signature length must be even")
        tokens += [word[i:i+2] for i in range(0, len(word), 2)]

    # ---- parse tokens ----
    pat = []
    mask = []
    for tok in tokens:
        if tok == "??":
            pat.append(0)
            mask.append("?")
        elif "?" in tok:
            raise ValueError("half byte wildcards are not supported: %r" % tok)
        elif all(c in string.hexdigits for c in tok):
            pat.append(int(tok, 16))
            mask.append("x")
        else:
            raise ValueError("invalid hex byte in signature: %r" % tok)

    return bytes(pat), "".join(mask)


def compile_signature(sig):
    pattern, mask = parse_signature(sig)
    return Signature.from_masked_bytes(pattern, mask)


def find_signature(mm, sig, offset=0):
    if not isinstance(sig, Signature):
        sig = compile_signature(sig)

    pos = sig.find(mm, offset)
    if pos == len(mm):
        return -1
    return pos
