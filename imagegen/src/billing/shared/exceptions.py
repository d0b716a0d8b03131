"""
Billing Exceptions

Custom exception classes for billing-related errors.
These provide structured error handling across the billing module.
Each class carries the HTTP status the API layer answers with.
"""


class BillingError(Exception):
    """
    Base exception for all billing-related errors.

    All billing exceptions inherit from this class, allowing for
    broad exception handling when needed.
    """

    http_status: int = 400

    def __init__(self, message: str, code: str = "BILLING_ERROR", details: dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }


class PaymentError(BillingError):
    """
    Raised when there's an issue creating or reading a payment.

    Examples:
        - Provider rejected the billing creation
        - Provider response missing billing id or checkout url
        - Checkout session creation failed
    """

    http_status = 502

    def __init__(
        self,
        message: str = "Payment processing error",
        code: str = "PAYMENT_ERROR",
        provider: str = None,
        provider_error: str = None
    ):
        details = {}
        if provider:
            details['provider'] = provider
        if provider_error:
            details['provider_error'] = provider_error

        super().__init__(
            message=message,
            code=code,
            details=details
        )
        self.provider = provider
        self.provider_error = provider_error


class ProductNotFoundError(BillingError):
    """Raised when a requested product doesn't exist or is inactive."""

    http_status = 404

    def __init__(self, product_id: str):
        super().__init__(
            message=f"Product '{product_id}' not found",
            code="PRODUCT_NOT_FOUND",
            details={'product_id': product_id}
        )
        self.product_id = product_id


class InvalidCustomerDataError(BillingError):
    """Raised when checkout customer data fails validation."""

    def __init__(self, message: str, field: str):
        super().__init__(
            message=message,
            code="INVALID_CUSTOMER_DATA",
            details={'field': field}
        )
        self.field = field


class PurchaseNotFoundError(BillingError):
    """Raised when no purchase matches the given identifiers."""

    http_status = 404

    def __init__(
        self,
        message: str = "Purchase not found",
        purchase_id: str = None,
        billing_id: str = None
    ):
        details = {}
        if purchase_id:
            details['purchase_id'] = purchase_id
        if billing_id:
            details['billing_id'] = billing_id
        super().__init__(
            message=message,
            code="PURCHASE_NOT_FOUND",
            details=details
        )
        self.purchase_id = purchase_id
        self.billing_id = billing_id


class LedgerUpdateError(BillingError):
    """
    Raised when granting a purchase's credits could not be committed.

    The status flip and the balance increment share one transaction,
    so both are rolled back and the grant can be retried.
    """

    http_status = 500

    def __init__(
        self,
        message: str = "Failed to apply purchase credits",
        purchase_id: str = None,
        user_id: str = None
    ):
        details = {}
        if purchase_id:
            details['purchase_id'] = purchase_id
        if user_id:
            details['user_id'] = user_id
        super().__init__(
            message=message,
            code="LEDGER_UPDATE_FAILED",
            details=details
        )
        self.purchase_id = purchase_id
        self.user_id = user_id


class WebhookError(BillingError):
    """
    Raised when there's an issue processing a webhook.

    Examples:
        - Invalid signature
        - Malformed payload
        - Processing failed
    """

    def __init__(
        self,
        message: str = "Webhook processing error",
        code: str = "WEBHOOK_ERROR",
        event_id: str = None,
        event_type: str = None
    ):
        details = {}
        if event_id:
            details['event_id'] = event_id
        if event_type:
            details['event_type'] = event_type

        super().__init__(
            message=message,
            code=code,
            details=details
        )
        self.event_id = event_id
        self.event_type = event_type


class InvalidWebhookPayloadError(WebhookError):
    """Raised when a webhook body is not an `{event, data}` object."""

    def __init__(self, message: str = "Invalid payload", event_type: str = None):
        super().__init__(message=message, code="WEBHOOK_INVALID_PAYLOAD", event_type=event_type)


class ProviderError(BillingError):
    """Raised when a payment provider call fails."""

    http_status = 502

    def __init__(
        self,
        message: str = "Payment provider error",
        code: str = "PROVIDER_ERROR",
        provider: str = "abacatepay",
        status_code: int = None
    ):
        details = {'provider': provider}
        if status_code is not None:
            details['status_code'] = status_code
        super().__init__(message=message, code=code, details=details)
        self.provider = provider
        self.status_code = status_code


class CircuitBreakerOpenError(BillingError):
    """Raised when the circuit breaker is open and preventing calls."""

    http_status = 503

    def __init__(
        self,
        message: str = "Circuit breaker is open. Service temporarily unavailable.",
        service_name: str = "abacatepay",
        reset_time: float = None
    ):
        super().__init__(
            message=message,
            code="CIRCUIT_BREAKER_OPEN",
            details={
                'service_name': service_name,
                'reset_time': reset_time
            }
        )
        self.service_name = service_name
        self.reset_time = reset_time
