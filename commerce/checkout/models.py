"""
Checkout models.

Address and payment forms are Pydantic models carrying the form rules
(required fields, email/phone/card patterns). The checkout session itself
is a plain dataclass owned by the orchestrator.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from commerce.errors import CheckoutValidationError
from commerce.payments.constants import PaymentMethod

EMAIL_PATTERN = re.compile(r"^[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}$", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"^[0-9+\-\s()]*$")
CARD_NUMBER_PATTERN = re.compile(r"^[0-9]{16}$")
EXPIRATION_PATTERN = re.compile(r"^(0[1-9]|1[0-2])/?([0-9]{2})$")
CVC_PATTERN = re.compile(r"^[0-9]{3,4}$")
COUNTRY_PATTERN = re.compile(r"^[A-Z]{2}$")


# ============================================================
# Enums
# ============================================================

class CheckoutStep(str, Enum):
    """Checkout steps, in order."""
    SHIPPING = "shipping"
    PAYMENT = "payment"
    REVIEW = "review"

    def previous(self) -> Optional["CheckoutStep"]:
        order = list(CheckoutStep)
        index = order.index(self)
        return order[index - 1] if index > 0 else None


# ============================================================
# Form Models
# ============================================================

class Address(BaseModel):
    """Shipping or billing address as submitted by the address form."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    full_name: str = Field(alias="fullName", min_length=1)
    email: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    street: str = Field(alias="address1", min_length=1)
    street2: Optional[str] = Field(default=None, alias="address2")
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(alias="zipCode", min_length=1)
    country: str = "US"

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError("Invalid phone number")
        return value

    @field_validator("country")
    @classmethod
    def _check_country(cls, value: str) -> str:
        value = value.upper()
        if not COUNTRY_PATTERN.match(value):
            raise ValueError("Country must be a 2-letter code")
        return value

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class PaymentDetails(BaseModel):
    """
    Payment form data.

    Card fields are required only for credit-card; redirect-based methods
    (PayPal, Apple Pay, Google Pay) carry none. Raw card data is held as
    SecretStr and never leaves this object except as the last four digits.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True, frozen=True)

    method: PaymentMethod = Field(alias="paymentMethod")
    card_number: Optional[SecretStr] = Field(default=None, alias="cardNumber", validate_default=True)
    name_on_card: Optional[str] = Field(default=None, alias="nameOnCard", validate_default=True)
    expiration_date: Optional[str] = Field(default=None, alias="expirationDate", validate_default=True)
    cvc: Optional[SecretStr] = Field(default=None, validate_default=True)

    @field_validator("card_number")
    @classmethod
    def _check_card_number(cls, value: Optional[SecretStr], info: ValidationInfo) -> Optional[SecretStr]:
        if info.data.get("method") != PaymentMethod.CREDIT_CARD:
            return None
        digits = value.get_secret_value().replace(" ", "") if value else ""
        if not CARD_NUMBER_PATTERN.match(digits):
            raise ValueError("Please enter a valid 16-digit card number")
        return SecretStr(digits)

    @field_validator("name_on_card")
    @classmethod
    def _check_name_on_card(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if info.data.get("method") != PaymentMethod.CREDIT_CARD:
            return None
        if not value:
            raise ValueError("Name on card is required")
        return value

    @field_validator("expiration_date")
    @classmethod
    def _check_expiration(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if info.data.get("method") != PaymentMethod.CREDIT_CARD:
            return None
        if not value or not EXPIRATION_PATTERN.match(value):
            raise ValueError("Please enter a valid expiration date (MM/YY)")
        return value

    @field_validator("cvc")
    @classmethod
    def _check_cvc(cls, value: Optional[SecretStr], info: ValidationInfo) -> Optional[SecretStr]:
        if info.data.get("method") != PaymentMethod.CREDIT_CARD:
            return None
        if not value or not CVC_PATTERN.match(value.get_secret_value()):
            raise ValueError("Please enter a valid CVC (3-4 digits)")
        return value

    @property
    def last_four(self) -> Optional[str]:
        if self.card_number is None:
            return None
        return self.card_number.get_secret_value()[-4:]

    def redacted(self) -> dict:
        """Method and last four digits only."""
        return {"method": self.method.value, "lastFour": self.last_four}


# ============================================================
# Validation helpers
# ============================================================

ModelT = TypeVar("ModelT", bound=BaseModel)


def _validate(model: Type[ModelT], data: Any) -> ModelT:
    if isinstance(data, model):
        return data
    if not isinstance(data, Mapping):
        raise CheckoutValidationError({"__root__": f"Expected {model.__name__} data"})
    try:
        return model.model_validate(dict(data))
    except ValidationError as e:
        errors = {}
        for error in e.errors():
            field = ".".join(str(part) for part in error["loc"]) or "__root__"
            errors[field] = error["msg"].removeprefix("Value error, ")
        raise CheckoutValidationError(errors) from e


def validate_address(data: Any) -> Address:
    """Validate address form data; raises CheckoutValidationError with field errors."""
    return _validate(Address, data)


def validate_payment_details(data: Any) -> PaymentDetails:
    """Validate payment form data; raises CheckoutValidationError with field errors."""
    return _validate(PaymentDetails, data)


# ============================================================
# Session
# ============================================================

@dataclass
class CheckoutSession:
    """Transient state accumulated across the checkout steps."""
    current_step: CheckoutStep = CheckoutStep.SHIPPING
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    payment_details: Optional[PaymentDetails] = None
    is_processing: bool = False
    error: Optional[str] = None
    order_id: Optional[str] = None
    order_complete: bool = False

    @property
    def phase(self) -> str:
        """Current step name, or "completed" once the order is placed."""
        if self.order_complete:
            return "completed"
        return self.current_step.value
