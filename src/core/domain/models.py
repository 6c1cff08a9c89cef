"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta y documentación autocontenida (Field) sin acoplar el Core
  a librerías de I/O.
- Facilita la serialización de planes, intentos y resultados hacia la capa MCP.

Nota:
- Estos modelos describen *qué* se pide a Strapi, no *cómo* se transporta.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class CredentialMode(str, Enum):
    """Estrategias de autenticación contra Strapi."""

    API_TOKEN = "ApiToken"
    ADMIN_SESSION = "AdminSession"
    ANONYMOUS_PROBE = "AnonymousProbe"

    @property
    def is_session(self) -> bool:
        return self is CredentialMode.ADMIN_SESSION


class ApiSurface(str, Enum):
    """Familia de endpoints de Strapi a la que pertenece un candidato."""

    CONTENT_MANAGER = "content-manager"
    CONTENT_TYPE_BUILDER = "content-type-builder"
    PUBLIC = "public"
    UPLOAD = "upload"


class AttributeSpec(BaseModel):
    """Definición de un campo de content type."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    type: str = Field(
        default="string",
        description="Tipo Strapi (string, text, number, boolean, relation, media, component, json...).",
    )
    required: bool = Field(default=False)
    target: str | None = Field(
        default=None,
        description="UID destino para relaciones.",
    )
    component_uid: str | None = Field(
        default=None,
        alias="component",
        description="UID del componente para campos de tipo component.",
    )


class ContentTypeDescriptor(BaseModel):
    """Descriptor de un content type descubierto en Strapi."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str = Field(
        ...,
        min_length=1,
        description="UID con namespace (p.ej. 'api::article.article').",
    )
    api_id: str = Field(default="", alias="apiId")
    display_name: str = Field(default="", alias="displayName")
    description: str = Field(default="")
    kind: str = Field(
        default="collectionType",
        description="'collectionType' o 'singleType'.",
    )
    singular_name: str | None = Field(default=None, alias="singularName")
    plural_name: str | None = Field(default=None, alias="pluralName")
    attributes: dict[str, AttributeSpec] = Field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "apiId": self.api_id,
            "displayName": self.display_name,
            "description": self.description,
        }


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1, alias="pageSize")


class QueryOptions(BaseModel):
    """Opciones de consulta (filtros, paginación, orden, populate, fields).

    Todos los campos son opcionales; los ausentes no se envían.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    filters: dict[str, Any] | None = None
    pagination: Pagination | None = None
    sort: list[str] | None = None
    populate: str | list[str] | dict[str, Any] | None = None
    fields: list[str] | None = None
    locale: str | None = None
    status: str | None = Field(default=None, description="'draft' o 'published' (Strapi v5).")
    publication_state: str | None = Field(
        default=None,
        alias="publicationState",
        description="'live' o 'preview' (Strapi v4).",
    )

    def to_params(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class EndpointCandidate(BaseModel):
    """Un paso del plan: modo de credencial + endpoint físico."""

    model_config = ConfigDict(frozen=True)

    mode: CredentialMode
    method: str = Field(default="GET")
    endpoint: str = Field(..., min_length=1)
    surface: ApiSurface = Field(default=ApiSurface.PUBLIC)

    def label(self) -> str:
        return f"{self.method} {self.endpoint} [{self.mode.value}]"


class FallbackPlan(BaseModel):
    """Secuencia ordenada de candidatos para una operación lógica."""

    operation: str
    candidates: list[EndpointCandidate] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.candidates)

    def __bool__(self) -> bool:
        return bool(self.candidates)


class Attempt(BaseModel):
    """Registro diagnóstico de un candidato intentado."""

    mode: CredentialMode
    method: str
    endpoint: str
    status: int | None = None
    outcome: str = Field(
        ...,
        description="success, not_found, forbidden, unauthorized, auth_unavailable, "
        "bad_request, unavailable.",
    )


class ResultKind(str, Enum):
    COLLECTION = "collection"
    ENTRY = "entry"
    EMPTY = "empty"
    ERROR = "error"
    UNRECOGNIZED = "unrecognized"


class NormalizedResult(BaseModel):
    """Forma canónica producida por el normalizador."""

    kind: ResultKind
    data: list[Any] | dict[str, Any] | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    raw: Any = Field(default=None, exclude=True)
    source: EndpointCandidate | None = Field(
        default=None,
        exclude=True,
        description="Candidato que produjo el resultado (lo rellena el ejecutor).",
    )

    def as_collection(self) -> dict[str, Any]:
        if isinstance(self.data, list):
            data = self.data
        elif isinstance(self.data, dict):
            data = [self.data]
        else:
            data = []
        return {"data": data, "meta": self.meta}

    def as_entry(self) -> dict[str, Any] | None:
        if isinstance(self.data, dict):
            return self.data
        if isinstance(self.data, list) and self.data:
            first = self.data[0]
            return first if isinstance(first, dict) else None
        return None
