#!/usr/bin/env python3

import sys

from helper import *
from search import *


def main(path, sig, mask=None):

    if mask is None:
        signature = compile_signature(sig)
    else:
        # Literal bytes with a separate mask, like "E9 00 00 00 00 90" "x????x"
        pattern, _ = parse_signature(sig)
        signature = Signature.from_masked_bytes(pattern, mask)

    print(signature)

    with openImage(path) as image:
        x = image.find(signature)

        if x is None:
            print("not found")
            return None

        symbol = None
        if isinstance(image, ELFReader) and image.elfSymbols:
            for name, value in image.elfSymbols.items():
                if value == x and name:
                    symbol = name
                    break

    if symbol is not None:
        print("0x%X (%s)" % (x, symbol))
    else:
        print("0x%X" % x)
    return x


if __name__ == "__main__":
    if len(sys.argv) not in [3, 4]:
        print("usage: %s <image> <signature> [mask]" % sys.argv[0])
        sys.exit(2)
    if main(*sys.argv[1:]) is None:
        sys.exit(1)
