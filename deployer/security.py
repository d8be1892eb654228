from typing import Optional

def verify_secret(secret: Optional[str], expected: Optional[str]) -> bool:
    if not isinstance(secret, str) or not expected:
        return False
    given, wanted = secret.strip().encode(), expected.strip().encode()
    if not given or len(given) != len(wanted):
        return False
    diff = 0
    for x, y in zip(given, wanted):
        diff |= x ^ y
    return diff == 0
