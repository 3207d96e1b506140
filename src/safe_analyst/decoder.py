"""Classify a pending transaction into one semantic action kind.

``classify`` is pure and total: anything it cannot interpret becomes a
``GenericCall``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from .models import DecodedCall, DecodedParameter, PendingTransaction


@dataclass(frozen=True)
class AddOwner:
    address: str
    new_threshold: int
    kind: str = "add_owner"


@dataclass(frozen=True)
class RemoveOwner:
    address: str
    new_threshold: int
    kind: str = "remove_owner"


@dataclass(frozen=True)
class ChangeThreshold:
    new_threshold: int
    kind: str = "change_threshold"


@dataclass(frozen=True)
class EnableModule:
    module_address: str
    kind: str = "enable_module"


@dataclass(frozen=True)
class TokenTransfer:
    destination: str
    amount: int
    # None for a native-token transfer, else the ERC20 contract address.
    token: Optional[str] = None
    kind: str = "token_transfer"


@dataclass(frozen=True)
class GenericCall:
    method: Optional[str]
    destination: str
    parameter_count: int
    kind: str = "generic_call"


ActionClassification = Union[AddOwner, RemoveOwner, ChangeThreshold, EnableModule, TokenTransfer, GenericCall]

CONFIGURATION_CHANGES = (AddOwner, RemoveOwner, ChangeThreshold)

ERC20_TRANSFER_METHOD = "transfer"

# method -> role -> (accepted parameter names, position used when names are absent)
ParameterSpec = Tuple[Tuple[str, ...], int]

METHOD_PARAMETERS: Dict[str, Dict[str, ParameterSpec]] = {
    "addOwnerWithThreshold": {
        "owner": (("owner",), 0),
        "threshold": (("_threshold", "threshold"), 1),
    },
    "removeOwner": {
        "owner": (("owner",), 1),
        "threshold": (("_threshold", "threshold"), 2),
    },
    "changeThreshold": {
        "threshold": (("_threshold", "threshold"), 0),
    },
    "enableModule": {
        "module": (("module",), 0),
    },
    ERC20_TRANSFER_METHOD: {
        "destination": (("to", "_to", "recipient", "dst"), 0),
        "amount": (("value", "_value", "amount", "wad"), 1),
    },
}


def resolve_parameter(decoded: DecodedCall, role: str) -> Any:
    """Look up a decoded argument by role, by name first and by position second.

    Position is only trusted when the parameter at that slot is unnamed.
    Returns None when the role cannot be resolved.
    """
    entry = METHOD_PARAMETERS.get(decoded.method, {}).get(role)
    if entry is None:
        return None
    names, position = entry
    for param in decoded.parameters:
        if param.name in names:
            return param.value
    if position < len(decoded.parameters):
        positional: DecodedParameter = decoded.parameters[position]
        if not positional.name:
            return positional.value
    return None


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError:
            return None
    return None


def _as_address(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _add_owner(tx: PendingTransaction, decoded: DecodedCall) -> Optional[ActionClassification]:
    owner = _as_address(resolve_parameter(decoded, "owner"))
    threshold = _as_int(resolve_parameter(decoded, "threshold"))
    if owner is None or threshold is None:
        return None
    return AddOwner(address=owner, new_threshold=threshold)


def _remove_owner(tx: PendingTransaction, decoded: DecodedCall) -> Optional[ActionClassification]:
    owner = _as_address(resolve_parameter(decoded, "owner"))
    threshold = _as_int(resolve_parameter(decoded, "threshold"))
    if owner is None or threshold is None:
        return None
    return RemoveOwner(address=owner, new_threshold=threshold)


def _change_threshold(tx: PendingTransaction, decoded: DecodedCall) -> Optional[ActionClassification]:
    threshold = _as_int(resolve_parameter(decoded, "threshold"))
    if threshold is None:
        return None
    return ChangeThreshold(new_threshold=threshold)


def _enable_module(tx: PendingTransaction, decoded: DecodedCall) -> Optional[ActionClassification]:
    module = _as_address(resolve_parameter(decoded, "module"))
    if module is None:
        return None
    return EnableModule(module_address=module)


def _erc20_transfer(tx: PendingTransaction, decoded: DecodedCall) -> Optional[ActionClassification]:
    destination = _as_address(resolve_parameter(decoded, "destination"))
    amount = _as_int(resolve_parameter(decoded, "amount"))
    if destination is None or amount is None:
        return None
    return TokenTransfer(destination=destination, amount=amount, token=tx.to)


_CLASSIFIERS: Mapping[str, Callable[[PendingTransaction, DecodedCall], Optional[ActionClassification]]] = {
    "addOwnerWithThreshold": _add_owner,
    "removeOwner": _remove_owner,
    "changeThreshold": _change_threshold,
    "enableModule": _enable_module,
    ERC20_TRANSFER_METHOD: _erc20_transfer,
}


def classify(tx: PendingTransaction) -> ActionClassification:
    decoded = tx.decoded
    if decoded is not None and decoded.method:
        classifier = _CLASSIFIERS.get(decoded.method)
        if classifier is not None:
            classification = classifier(tx, decoded)
            if classification is not None:
                return classification

    if tx.value > 0 and not tx.has_call_data:
        return TokenTransfer(destination=tx.to, amount=tx.value)

    return GenericCall(
        method=decoded.method if decoded is not None else None,
        destination=tx.to,
        parameter_count=len(decoded.parameters) if decoded is not None else 0,
    )


def decoded_transfer_destination(tx: PendingTransaction) -> Optional[str]:
    """Destination argument of an ERC20 ``transfer`` call, if the call is one."""
    if tx.decoded is None or tx.decoded.method != ERC20_TRANSFER_METHOD:
        return None
    return _as_address(resolve_parameter(tx.decoded, "destination"))


def is_configuration_change(classification: ActionClassification) -> bool:
    return isinstance(classification, CONFIGURATION_CHANGES)


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()


def contains_address(addresses: Sequence[str], address: Optional[str]) -> bool:
    return any(same_address(candidate, address) for candidate in addresses)
