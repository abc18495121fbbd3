# Credits: Nightfire Research Team - 2024

import hashlib


def align(offset, wordSize):
    return ((offset + wordSize - 1) // wordSize) * wordSize


class Utils:
    @staticmethod
    def calc_data_hash(data):
        return hashlib.sha1(data)
