import random
import time

ONE_KB = 2**10
ONE_MB = 2**20
ONE_GB = 2**30

TOKEN_LENGTH = 13
TOKEN_CHARS = '0123456789abcdefghijklmnopqrstuvwxyz'

RNG = random.SystemRandom()


def pluralize(s, num):
    # very naive
    if abs(num) == 1:
        return s
    else:
        return s + 's'


def human_size(size):
    if size >= ONE_GB:
        return '{:.1f} GiB'.format(size / ONE_GB)
    elif size >= ONE_MB:
        return '{:.1f} MiB'.format(size / ONE_MB)
    elif size >= ONE_KB:
        return '{:.1f} KiB'.format(size / ONE_KB)
    else:
        return '{} {}'.format(size, pluralize('byte', size))


def gen_token():
    return ''.join(RNG.choice(TOKEN_CHARS) for _ in range(TOKEN_LENGTH))


def gen_unique_id(now=None):
    """Return a collision-resistant name stem: milliseconds since the epoch
    followed by a short random token.
    """
    if now is None:
        now = time.time()
    return '{}-{}'.format(int(now * 1000), gen_token())
