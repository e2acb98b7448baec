"""Transaction variants carried inside ledger blocks.

Every transaction is one member of a closed tagged union, discriminated by
its ``txType`` field:

==============  ==========================================================
``txType``      Required fields
==============  ==========================================================
``CREATE_ITEM`` ``itemSku``, ``quantity``, ``toLocation``
                (optional ``itemName``, ``price``, ``category``)
``STOCK_IN``    ``itemSku``, ``quantity``, ``location``
``STOCK_OUT``   ``itemSku``, ``quantity``, ``location``
``MOVE``        ``itemSku``, ``quantity``, ``fromLocation``, ``toLocation``
``GENESIS``     none
==============  ==========================================================

The wire format is camelCase because the payload is hashed verbatim into the
block; models accept either the wire alias or the Python field name.  Actor
metadata (``userId``, ``userName``, ``employeeId``) is stamped on by the
service layer and travels with the transaction.  Unknown extra keys are
preserved so that a stored payload round-trips unchanged.

``quantity`` must be a real JSON integer (booleans and floats are refused),
but its positivity is **not** enforced here: committed blocks must always
deserialise for replay.  The strict processor path rejects non-positive
quantities and non-finite or negative prices instead.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter, ValidationError

from bims_ledger.ledger.errors import InvalidTransactionError

CREATE_ITEM = "CREATE_ITEM"
STOCK_IN = "STOCK_IN"
STOCK_OUT = "STOCK_OUT"
MOVE = "MOVE"
GENESIS = "GENESIS"

TX_TYPES = (CREATE_ITEM, STOCK_IN, STOCK_OUT, MOVE, GENESIS)

DEFAULT_CATEGORY = "Uncategorized"


class _TransactionBase(BaseModel):
    """Fields and behaviour shared by every variant."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    user_id: int | str | None = Field(default=None, alias="userId")
    user_name: str | None = Field(default=None, alias="userName")
    employee_id: str | None = Field(default=None, alias="employeeId")

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the camelCase wire dict embedded in a block."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CreateItem(_TransactionBase):
    """Register a new SKU and credit its opening quantity."""

    tx_type: Literal["CREATE_ITEM"] = Field(default=CREATE_ITEM, alias="txType")
    item_sku: str = Field(alias="itemSku", min_length=1)
    item_name: str | None = Field(default=None, alias="itemName")
    quantity: StrictInt
    to_location: str = Field(alias="toLocation", min_length=1)
    price: int | float | None = None
    category: str | None = None


class StockIn(_TransactionBase):
    """Receive stock at a location."""

    tx_type: Literal["STOCK_IN"] = Field(default=STOCK_IN, alias="txType")
    item_sku: str = Field(alias="itemSku", min_length=1)
    quantity: StrictInt
    location: str = Field(min_length=1)


class StockOut(_TransactionBase):
    """Remove stock from a location (sale, write-off, ...)."""

    tx_type: Literal["STOCK_OUT"] = Field(default=STOCK_OUT, alias="txType")
    item_sku: str = Field(alias="itemSku", min_length=1)
    quantity: StrictInt
    location: str = Field(min_length=1)


class Move(_TransactionBase):
    """Transfer stock between two locations."""

    tx_type: Literal["MOVE"] = Field(default=MOVE, alias="txType")
    item_sku: str = Field(alias="itemSku", min_length=1)
    quantity: StrictInt
    from_location: str = Field(alias="fromLocation", min_length=1)
    to_location: str = Field(alias="toLocation", min_length=1)


class Genesis(_TransactionBase):
    """Payload of the index-0 anchor block.  Never mutates inventory."""

    tx_type: Literal["GENESIS"] = Field(default=GENESIS, alias="txType")


Transaction = Annotated[
    Union[CreateItem, StockIn, StockOut, Move, Genesis],
    Field(discriminator="tx_type"),
]

_TRANSACTION_ADAPTER: TypeAdapter[Any] = TypeAdapter(Transaction)


def _describe_validation_error(exc: ValidationError, payload: Mapping[str, Any]) -> str:
    """Turn the first pydantic error into a single readable sentence."""
    first = exc.errors()[0]
    error_type = first.get("type")
    if error_type == "union_tag_not_found":
        return "Transaction is missing 'txType'."
    if error_type == "union_tag_invalid":
        return f"Unknown transaction type: {payload.get('txType')!r}."
    loc = first.get("loc") or ()
    # Discriminated unions prefix the location with the tag value.
    field_path = [str(part) for part in loc if part not in TX_TYPES]
    field_name = ".".join(field_path) or "transaction"
    return f"Invalid field '{field_name}': {first.get('msg')}."


def parse_transaction(payload: Mapping[str, Any] | _TransactionBase) -> Transaction:
    """Deserialise a wire payload into its transaction variant.

    Already-parsed models are returned unchanged.

    Raises:
        InvalidTransactionError: If the payload is not a mapping, lacks a
            known ``txType``, or is missing/mistyping a required field.
    """
    if isinstance(payload, _TransactionBase):
        return payload  # type: ignore[return-value]
    if not isinstance(payload, Mapping):
        raise InvalidTransactionError("Transaction payload must be a JSON object.")
    try:
        return _TRANSACTION_ADAPTER.validate_python(dict(payload))
    except ValidationError as exc:
        raise InvalidTransactionError(_describe_validation_error(exc, payload)) from exc


def transaction_payload(transaction: Mapping[str, Any] | _TransactionBase) -> dict[str, Any]:
    """Return the wire dict for either a model or an already-raw mapping."""
    if isinstance(transaction, _TransactionBase):
        return transaction.to_payload()
    return dict(transaction)
