"""Record models for both read paths.

The mirror node and the consensus query service describe the same ledger
entities with different field names and wire types (the mirror node sends
``decimals`` and ``total_supply`` as strings, for instance). Each record kind
therefore declares one model per source plus a table that maps a logical
field name to the attribute path on each model. Comparisons always go
through that table, so a field that is absent from a payload surfaces as
``FieldNotPresentError`` instead of a ``None`` leaking into an equality check.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tck.core.exceptions import (
    FieldNotPresentError,
    RecordValidationError,
    UnknownFieldError,
)


class Source(str, Enum):
    """The two independent read paths."""

    CONSENSUS = "consensus"
    MIRROR = "mirror"


class RecordKind(str, Enum):
    """Entity kinds the harness knows how to read from both sources."""

    ACCOUNT = "account"
    BALANCE = "balance"
    TOKEN = "token"


# =============================================================================
# Mirror node models (snake_case REST payloads)
# =============================================================================


class MirrorModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MirrorKey(MirrorModel):
    type: str | None = Field(None, alias="_type")
    key: str | None = None


class MirrorAccountBalance(MirrorModel):
    balance: int
    timestamp: str | None = None
    tokens: list[dict[str, Any]] = Field(default_factory=list)


class MirrorAccount(MirrorModel):
    """Entry of ``/api/v1/accounts``."""

    account: str
    alias: str | None = None
    auto_renew_period: int | None = None
    balance: MirrorAccountBalance | None = None
    decline_reward: bool | None = None
    deleted: bool | None = None
    evm_address: str | None = None
    expiry_timestamp: str | None = None
    key: MirrorKey | None = None
    max_automatic_token_associations: int | None = None
    memo: str | None = None
    receiver_sig_required: bool | None = None
    staked_account_id: str | None = None
    staked_node_id: int | None = None


class MirrorBalance(MirrorModel):
    """Entry of ``/api/v1/balances``."""

    account: str
    balance: int
    tokens: list[dict[str, Any]] = Field(default_factory=list)


class MirrorToken(MirrorModel):
    """
    Body of ``/api/v1/tokens/{token_id}``.

    Entries of the ``/api/v1/tokens`` list only carry id, name, symbol,
    decimals, type, admin key and metadata, so tokens are read from the
    detail resource.
    """

    token_id: str
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    total_supply: int | None = None
    initial_supply: int | None = None
    max_supply: int | None = None
    supply_type: str | None = None
    type: str | None = None
    treasury_account_id: str | None = None
    memo: str | None = None
    freeze_default: bool | None = None
    deleted: bool | None = None
    admin_key: MirrorKey | None = None
    kyc_key: MirrorKey | None = None
    freeze_key: MirrorKey | None = None
    wipe_key: MirrorKey | None = None
    supply_key: MirrorKey | None = None
    fee_schedule_key: MirrorKey | None = None
    pause_key: MirrorKey | None = None
    auto_renew_account: str | None = None
    auto_renew_period: int | None = None
    metadata: str | None = None


# =============================================================================
# Consensus query models (camelCase, shaped like the SDK query results)
# =============================================================================


class ConsensusModel(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


class ConsensusAccountInfo(ConsensusModel):
    account_id: str
    balance: int | None = None
    key: str | None = None
    account_memo: str | None = None
    is_deleted: bool | None = None
    is_receiver_signature_required: bool | None = None
    max_automatic_token_associations: int | None = None
    staked_account_id: str | None = None
    staked_node_id: int | None = None
    decline_staking_reward: bool | None = None
    auto_renew_period: int | None = None
    expiration_time: str | None = None


class ConsensusAccountBalance(ConsensusModel):
    account_id: str | None = None
    hbars: int
    tokens: dict[str, int] = Field(default_factory=dict)


class ConsensusTokenInfo(ConsensusModel):
    token_id: str
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    total_supply: int | None = None
    max_supply: int | None = None
    supply_type: str | None = None
    token_type: str | None = None
    treasury_account_id: str | None = None
    token_memo: str | None = None
    default_freeze_status: bool | None = None
    is_deleted: bool | None = None
    admin_key: str | None = None
    kyc_key: str | None = None
    freeze_key: str | None = None
    wipe_key: str | None = None
    supply_key: str | None = None
    fee_schedule_key: str | None = None
    pause_key: str | None = None
    auto_renew_account_id: str | None = None
    auto_renew_period: int | None = None


# =============================================================================
# Field schema
# =============================================================================


# DER SubjectPublicKeyInfo headers in front of a raw public key
_DER_KEY_PREFIXES = (
    "302a300506032b6570032100",  # ED25519
    "302d300706052b8104000a032200",  # ECDSA secp256k1, curve OID only
    "3036301006072a8648ce3d020106052b8104000a032200",  # ECDSA secp256k1
)


def public_key_hex(value: Any) -> Any:
    """
    Reduce a public key to the raw hex the mirror node reports.

    The consensus side (and the SDK server) hand out DER-encoded keys while
    the mirror node strips the DER header for ED25519 and ECDSA keys. Key
    lists and threshold keys are protobuf-encoded on both sides and are
    compared as plain lowercase hex.
    """
    if not isinstance(value, str):
        return value
    text = value.lower()
    if text.startswith("0x"):
        text = text[2:]
    for prefix in _DER_KEY_PREFIXES:
        if text.startswith(prefix):
            return text[len(prefix):]
    return text


@dataclass(frozen=True)
class FieldSpec:
    """Dotted attribute path of one logical field on each source's model."""

    mirror: str
    consensus: str
    normalize: Callable[[Any], Any] | None = None

    def path(self, source: Source) -> str:
        return self.mirror if source is Source.MIRROR else self.consensus

    def comparable(self, value: Any) -> Any:
        """Bring an observed or expected value into the form used for equality."""
        return self.normalize(value) if self.normalize else value


@dataclass(frozen=True)
class KindSchema:
    """
    How one record kind is read and compared.

    ``detail`` kinds are read from ``/api/v1/{collection}/{id}`` because the
    filtered list omits most of their fields. Absence checks still use the
    filtered list.
    """

    kind: RecordKind
    collection: str
    filter_key: str
    mirror_model: type[MirrorModel]
    consensus_model: type[ConsensusModel]
    fields: Mapping[str, FieldSpec]
    detail: bool = False

    def model_for(self, source: Source) -> type[BaseModel]:
        return self.mirror_model if source is Source.MIRROR else self.consensus_model

    def field(self, name: str) -> FieldSpec:
        try:
            return self.fields[name]
        except KeyError:
            raise UnknownFieldError(self.kind.value, name, list(self.fields)) from None


def _same(name: str) -> FieldSpec:
    return FieldSpec(mirror=name, consensus=name)


def _key(mirror: str, consensus: str) -> FieldSpec:
    return FieldSpec(mirror=mirror, consensus=consensus, normalize=public_key_hex)


_SCHEMAS: dict[RecordKind, KindSchema] = {
    RecordKind.ACCOUNT: KindSchema(
        kind=RecordKind.ACCOUNT,
        collection="accounts",
        filter_key="account.id",
        mirror_model=MirrorAccount,
        consensus_model=ConsensusAccountInfo,
        fields={
            "account_id": FieldSpec("account", "account_id"),
            "balance": FieldSpec("balance.balance", "balance"),
            "key": _key("key.key", "key"),
            "memo": FieldSpec("memo", "account_memo"),
            "deleted": FieldSpec("deleted", "is_deleted"),
            "receiver_signature_required": FieldSpec(
                "receiver_sig_required", "is_receiver_signature_required"
            ),
            "max_automatic_token_associations": _same("max_automatic_token_associations"),
            "staked_account_id": _same("staked_account_id"),
            "staked_node_id": _same("staked_node_id"),
            "decline_staking_reward": FieldSpec("decline_reward", "decline_staking_reward"),
            "auto_renew_period": _same("auto_renew_period"),
        },
    ),
    RecordKind.BALANCE: KindSchema(
        kind=RecordKind.BALANCE,
        collection="balances",
        filter_key="account.id",
        mirror_model=MirrorBalance,
        consensus_model=ConsensusAccountBalance,
        fields={
            "account_id": FieldSpec("account", "account_id"),
            "balance": FieldSpec("balance", "hbars"),
        },
    ),
    RecordKind.TOKEN: KindSchema(
        kind=RecordKind.TOKEN,
        collection="tokens",
        filter_key="token.id",
        mirror_model=MirrorToken,
        consensus_model=ConsensusTokenInfo,
        detail=True,
        fields={
            "token_id": _same("token_id"),
            "name": _same("name"),
            "symbol": _same("symbol"),
            "decimals": _same("decimals"),
            "total_supply": _same("total_supply"),
            "max_supply": _same("max_supply"),
            "supply_type": _same("supply_type"),
            "token_type": FieldSpec("type", "token_type"),
            "treasury_account_id": _same("treasury_account_id"),
            "memo": FieldSpec("memo", "token_memo"),
            "freeze_default": FieldSpec("freeze_default", "default_freeze_status"),
            "deleted": FieldSpec("deleted", "is_deleted"),
            "admin_key": _key("admin_key.key", "admin_key"),
            "kyc_key": _key("kyc_key.key", "kyc_key"),
            "freeze_key": _key("freeze_key.key", "freeze_key"),
            "wipe_key": _key("wipe_key.key", "wipe_key"),
            "supply_key": _key("supply_key.key", "supply_key"),
            "fee_schedule_key": _key("fee_schedule_key.key", "fee_schedule_key"),
            "pause_key": _key("pause_key.key", "pause_key"),
            "auto_renew_account_id": FieldSpec("auto_renew_account", "auto_renew_account_id"),
            "auto_renew_period": _same("auto_renew_period"),
        },
    ),
}


def schema_for(kind: RecordKind) -> KindSchema:
    return _SCHEMAS[RecordKind(kind)]


def parse_record(kind: RecordKind, source: Source, raw: Mapping[str, Any]) -> BaseModel:
    """Validate a raw payload into the kind's model for ``source``."""
    model = schema_for(kind).model_for(source)
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise RecordValidationError(
            source.value,
            RecordKind(kind).value,
            e.errors(include_url=False, include_input=False, include_context=False),
        ) from e


def extract_field(
    kind: RecordKind,
    source: Source,
    record: BaseModel,
    field: str,
) -> Any:
    """
    Read a logical field from a parsed record.

    Each segment of the dotted path must have been present in the payload.
    An explicit ``null`` part-way down the path (an account with no key,
    say) is a real observation and yields ``None``. Keys come back as raw
    public key hex on both sources.
    """
    spec = schema_for(kind).field(field)
    path = spec.path(source)
    value: Any = record
    for segment in path.split("."):
        if value is None:
            return None
        if segment not in value.model_fields_set:
            raise FieldNotPresentError(source.value, RecordKind(kind).value, field, path)
        value = getattr(value, segment)
    return spec.comparable(value)
