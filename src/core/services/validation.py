"""Reglas de validación por content type aplicadas a los datos de escritura.

Las reglas vienen de la configuración (`STRAPI_VALIDATION_RULES`), por UID:

    {
      "api::technical-doc.technical-doc": {
        "required": ["title"],
        "max_lengths": {"title": 255},
        "forbidden_fields": {"body": "use 'content' for the document text"}
      }
    }

Una violación lanza `InvalidRequest` antes de enviar ningún request.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError

from core.errors import ConfigurationError, InvalidRequest


class ValidationRule(BaseModel):
    required: list[str] = Field(default_factory=list)
    max_lengths: dict[str, int] = Field(default_factory=dict)
    forbidden_fields: dict[str, str] = Field(default_factory=dict)

    def problems(self, data: Mapping[str, Any], *, partial: bool) -> list[str]:
        found: list[str] = []
        for name, hint in self.forbidden_fields.items():
            if name in data:
                found.append(f"field '{name}' is not allowed: {hint}" if hint else f"field '{name}' is not allowed")
        if not partial:
            for name in self.required:
                if data.get(name) in (None, ""):
                    found.append(f"field '{name}' is required")
        for name, limit in self.max_lengths.items():
            value = data.get(name)
            if isinstance(value, str) and len(value) > limit:
                found.append(f"field '{name}' is {len(value)} characters long (max {limit})")
        return found


class ValidationRuleTable:
    def __init__(self, rules: Mapping[str, ValidationRule] | None = None) -> None:
        self._rules = dict(rules or {})

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ValidationRuleTable":
        try:
            rules = {uid: ValidationRule.model_validate(spec) for uid, spec in raw.items()}
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid STRAPI_VALIDATION_RULES: {exc}") from exc
        return cls(rules)

    def validate(self, uid: str, data: Mapping[str, Any], *, partial: bool = False) -> None:
        rule = self._rules.get(uid)
        if rule is None:
            return
        problems = rule.problems(data, partial=partial)
        if problems:
            raise InvalidRequest(f"Invalid data for {uid}: " + "; ".join(problems))
