"""
Exception and Error Definitions Module

Defines the exception hierarchy for challenge issuance, payment
verification and the client retry handshake. All exceptions inherit from
X402Error for unified exception handling.

Exception Hierarchy:
    X402Error (root)
    ├── PaymentHeaderError
    │   ├── MissingPaymentHeaderError
    │   └── MalformedPaymentHeaderError
    ├── PaymentVerificationError
    │   ├── MalformedSignatureError
    │   ├── SignatureVerificationError
    │   ├── ChallengeMismatchError
    │   ├── ChallengeExpiredError
    │   ├── ReplayedPaymentError
    │   └── DelegatedAuthorityError
    ├── PaymentSigningFailedError
    ├── ConfigurationError
    ├── InternalFaultError
    └── InvalidTransition
"""


class X402Error(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions should inherit from this class to enable
    unified exception handling and centralized error processing.
    """
    pass


class PaymentHeaderError(X402Error):
    """
    Base exception for problems with the ``X-PAYMENT`` request header.
    """
    pass


class MissingPaymentHeaderError(PaymentHeaderError):
    """
    Raised when a protected request carries no payment header.

    This is the expected "first contact" path: the server answers it with
    a fresh challenge rather than treating it as a failure.
    """
    pass


class MalformedPaymentHeaderError(PaymentHeaderError):
    """
    Raised when the payment header is present but cannot be used.

    This includes scenarios such as:
    - Header value is not valid JSON
    - JSON value is not an object
    - Missing ``signature``, ``signer`` or ``challenge`` fields
    """
    pass


class PaymentVerificationError(X402Error):
    """
    Base exception for payment verification failures.

    Parent class for all errors that occur while validating an assertion.
    """
    pass


class MalformedSignatureError(PaymentVerificationError):
    """
    Raised when a signature is structurally invalid.

    This includes scenarios such as:
    - Signature is not hexadecimal
    - Signature is not 65 bytes (r || s || v)
    - Recovery id is not 0/1 or 27/28
    - r or s outside the secp256k1 curve order
    """
    pass


class SignatureVerificationError(PaymentVerificationError):
    """
    Raised when a well-formed signature does not recover to the claimed signer.

    Attributes:
        signer: Claimed signer address
        recovered: Address actually recovered from the signature
    """

    def __init__(self, message: str, signer: str = None, recovered: str = None):
        super().__init__(message)
        self.signer = signer
        self.recovered = recovered


class ChallengeMismatchError(PaymentVerificationError):
    """
    Raised when an echoed challenge disagrees with what the server would issue.

    Attributes:
        field: Name of the first mismatching challenge field
    """

    def __init__(self, field: str):
        super().__init__(f"Challenge mismatch: {field}")
        self.field = field


class ChallengeExpiredError(PaymentVerificationError):
    """
    Raised when an echoed challenge is older than the accepted window,
    or dated too far in the future.
    """
    pass


class ReplayedPaymentError(PaymentVerificationError):
    """
    Raised when an assertion that was already accepted is presented again.
    """
    pass


class DelegatedAuthorityError(PaymentVerificationError):
    """
    Raised when the delegated Verification Authority call fails.

    The authority's own error text is surfaced to the client unchanged.
    """
    pass


class PaymentSigningFailedError(X402Error):
    """
    Raised on the client when the Signer yields no assertion for a challenge.
    """
    pass


class ConfigurationError(X402Error):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing merchant address
    - Malformed merchant address or chain id
    - Route without a price
    - Unknown delegated authority name
    - Client challenged with no Signer configured
    """
    pass


class InternalFaultError(X402Error):
    """
    Raised for unexpected faults inside the guard.

    Surfaced to clients as a generic 500 response; never carries internal
    detail to the wire.
    """
    pass


class InvalidTransition(X402Error):
    """
    Raised when a state machine is asked to make a transition it does not allow.

    Attributes:
        current_state: State the machine was in
        target_state: State that was requested
    """

    def __init__(self, current_state, target_state):
        super().__init__(f"Invalid transition: {current_state} -> {target_state}")
        self.current_state = current_state
        self.target_state = target_state
