"""
Protocol constants shared by the server and client sides.
"""

# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_REQUIRED_HEADER = "X-Payment-Required"
PAYMENT_RESPONSE_HEADER = "X-Payment-Response"
PAYMENT_VERIFIED_VALUE = "verified"

PAYMENT_REQUIRED_STATUS = 402
PAYMENT_REQUIRED_ERROR = "Payment Required"
INTERNAL_ERROR_MESSAGE = "Internal server error"

# ---------------------------------------------------------------------------
# Challenge defaults
# ---------------------------------------------------------------------------

DEFAULT_CHAIN_ID = 8453  # Base mainnet
DEFAULT_CURRENCY = "USDC"
NONCE_BYTES = 16

#: Seconds a challenge stays acceptable after issuance.
DEFAULT_MAX_CHALLENGE_AGE = 300
#: Tolerated drift between client-echoed timestamps and the server clock.
DEFAULT_MAX_CLOCK_SKEW = 30
#: Upper bound on remembered (hash, signer) pairs for replay detection.
DEFAULT_REPLAY_CACHE_SIZE = 10_000

# ---------------------------------------------------------------------------
# EIP-712 domain
# ---------------------------------------------------------------------------

EIP712_DOMAIN_NAME = "x402"
EIP712_DOMAIN_VERSION = "1"
EIP712_VERIFYING_CONTRACT = "0x0000000000000000000000000000000000000000"
EIP712_PRIMARY_TYPE = "Payment"

# ---------------------------------------------------------------------------
# Verification error messages (part of the wire contract)
# ---------------------------------------------------------------------------

INVALID_HEADER_FORMAT = "Invalid payment header format"
SIGNATURE_VERIFICATION_FAILED = "Signature verification failed"
CHALLENGE_EXPIRED = "Challenge expired"
CHALLENGE_FROM_FUTURE = "Challenge timestamp is in the future"
PAYMENT_ALREADY_USED = "Payment already used"
