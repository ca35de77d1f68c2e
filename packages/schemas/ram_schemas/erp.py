"""ERP remote-call schemas - the typed envelope around the ERP's object-model interface."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# A domain is Polish notation: filter triples plus the "&", "|", "!" operators.
DomainOperator = Literal["&", "|", "!"]
DomainTriple = tuple[str, str, Any]
DomainTerm = DomainOperator | DomainTriple
Domain = tuple[DomainTerm, ...]


class RemoteCallRequest(BaseModel):
    """
    A single call against the ERP: model + method + structured parameters.

    Instances are frozen. `params` carries method-specific arguments
    (`ids`, `vals`, `vals_list`, `limit`, `offset`, `order`, ...).
    """

    model_config = ConfigDict(frozen=True)

    model: str = Field(min_length=1)
    method: str = Field(min_length=1)
    domain: Domain = ()
    fields: frozenset[str] = frozenset()
    params: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = None

    @field_validator("domain", mode="before")
    @classmethod
    def _coerce_domain(cls, value: Any) -> Any:
        # Accept lists of lists, as the ERP itself writes them.
        if isinstance(value, list | tuple):
            return tuple(
                term if isinstance(term, str) else tuple(term) for term in value
            )
        return value

    def wire_payload(self) -> dict[str, Any]:
        """Body for the ERP's JSON call interface."""
        payload: dict[str, Any] = {}
        if self.method in ("search_read", "search_count") or self.domain:
            payload["domain"] = [
                term if isinstance(term, str) else list(term) for term in self.domain
            ]
        if self.fields:
            payload["fields"] = sorted(self.fields)
        payload.update(self.params)
        context = dict(payload.pop("context", None) or {})
        payload["context"] = {"lang": "en_US", **context}
        return payload
