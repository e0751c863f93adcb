from enum import Enum


class InvalidReason(str, Enum):
    EMPTY_LINE = 'empty line'
    UNRECOGNIZED_FORMAT = 'unrecognized format'
    UNRECOGNIZED_PROVIDER = 'unrecognized provider'
    PROVIDER_INACTIVE = 'provider inactive'
    MALFORMED_ID = 'malformed id'


class LookupErrorCode(str, Enum):
    NOT_FOUND = 'not found'
    TIMEOUT = 'provider timeout'
    RATE_LIMITED = 'rate-limited'
    UNSUPPORTED_FORMAT = 'unsupported format'
    MALFORMED_RESPONSE = 'malformed response'
    UNAVAILABLE = 'unavailable'
    UNAUTHORIZED = 'unauthorized'
    NETWORK_ERROR = 'network error'
    PROVIDER_ERROR = 'provider error'


class ItemStatus(str, Enum):
    PENDING = 'pending'
    IN_FLIGHT = 'in_flight'
    SETTLED = 'settled'
    CANCELLED = 'cancelled'


class OrderLineStatus(str, Enum):
    ACCEPTED = 'accepted'
    PENDING = 'pending'
    PROCESSING = 'processing'
    REJECTED = 'rejected'
    FAILED = 'failed'
    UNKNOWN = 'unknown'


class GateReason(str, Enum):
    AFFORDABLE = 'affordable'
    INSUFFICIENT_BALANCE = 'insufficient_balance'
    CURRENCY_MISMATCH = 'currency_mismatch'
    NOTHING_TO_ORDER = 'nothing_to_order'
