from .apdu import APDUCommand, APDUResponse, InsType, SignPayloadType, parse_derivation_path
from .der import der_to_fixed
from .transport import LedgerTransport

__all__ = [
    "APDUCommand",
    "APDUResponse",
    "InsType",
    "SignPayloadType",
    "LedgerTransport",
    "der_to_fixed",
    "parse_derivation_path",
]
