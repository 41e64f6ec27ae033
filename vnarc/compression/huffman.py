'''
Huffman coding with the tree stored in front of the data.

The tree is serialized depth first: a 1 bit is an internal node followed
by its left and right subtrees, a 0 bit is a leaf followed by the 8 bits
of the symbol. Internal nodes are numbered from 256 so that a value below
256 is always a symbol. Codes are read MSB first, 0 goes left.
'''
from . import Codec
from ..common.bits import MsbBitReader
from ..exceptions import DecodeFailure


TREE_SIZE = 512


class Huffman(Codec):

    def _build_tree(self, bits):
        lhs = [0] * TREE_SIZE
        rhs = [0] * TREE_SIZE
        next_token = 256

        def create_tree():
            nonlocal next_token
            if bits.get_bit():
                token = next_token
                if token >= TREE_SIZE:
                    raise DecodeFailure(message='huffman tree has too many nodes')
                next_token += 1
                lhs[token] = create_tree()
                rhs[token] = create_tree()
                return token

            return bits.get_bits(8)

        root = create_tree()

        return root, lhs, rhs

    def _decode(self, stream, unpacked_size):
        if unpacked_size is None:
            raise DecodeFailure(message='huffman stream needs the unpacked size')

        bits = MsbBitReader(stream.read())
        root, lhs, rhs = self._build_tree(bits)
        self.logger.debug('tree built, root %d, %d bits left', root, bits.remaining)

        out = bytearray()
        while len(out) < unpacked_size:
            symbol = root
            while symbol >= 0x100:
                symbol = rhs[symbol] if bits.get_bit() else lhs[symbol]
            out.append(symbol)

        return out
