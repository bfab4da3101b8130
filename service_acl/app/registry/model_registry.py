"""
Model registry: static ACL declarations and method access types.

Models are registered programmatically or loaded from a YAML file::

    models:
      - name: Album
        default_permission: DENY
        acls:
          - principal_type: ROLE
            principal_id: $everyone
            access_type: READ
            permission: ALLOW
        properties:
          publish:
            acls:
              - principal_type: ROLE
                principal_id: $owner
                permission: ALLOW
        methods:
          publish: WRITE
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from shared.logging import get_logger
from shared.errors import ValidationError
from ..acl.models import ACLRule, AccessType, ModelDefinition, Permission, ALL

WRITE_METHODS = frozenset([
    "create",
    "updateOrCreate",
    "upsert",
    "updateAttributes",
    "destroyById",
    "deleteById",
    "removeById",
    "destroyAll",
])

READ_METHODS = frozenset([
    "exists",
    "findById",
    "find",
    "findOne",
    "count",
])


class ModelRegistry:
    """Registry of models and their statically declared ACLs."""

    def __init__(self):
        self.logger = get_logger("acl.registry")
        self.models: Dict[str, ModelDefinition] = {}

    def register(self, definition: ModelDefinition) -> ModelDefinition:
        """Register or replace a model definition."""
        self.models[definition.name] = definition
        self.logger.info(
            "Model registered",
            model=definition.name,
            acls=len(definition.acls),
            property_acls=sum(len(acls) for acls in definition.property_acls.values())
        )
        return definition

    def get(self, model: str) -> Optional[ModelDefinition]:
        return self.models.get(model)

    def get_static_acls(self, model: str, property: Optional[str] = None) -> List[ACLRule]:
        """Static ACLs for ``model``: model-level entries, then entries on ``property``."""
        definition = self.models.get(model)
        if definition is None:
            return []

        static_acls = [
            ACLRule(
                model=model,
                property=acl.property or ALL,
                access_type=acl.access_type,
                permission=acl.permission,
                principal_type=acl.principal_type,
                principal_id=acl.principal_id,
            )
            for acl in definition.acls
        ]

        if property and property != ALL:
            for acl in definition.property_acls.get(property, []):
                static_acls.append(ACLRule(
                    model=model,
                    property=property,
                    access_type=acl.access_type,
                    permission=acl.permission,
                    principal_type=acl.principal_type,
                    principal_id=acl.principal_id,
                ))

        self.logger.debug("Static ACLs collected", model=model, property=property, count=len(static_acls))
        return static_acls

    def get_default_permission(self, model: str) -> Optional[Permission]:
        definition = self.models.get(model)
        return definition.default_permission if definition else None

    def get_access_type_for_method(self, model: str, method: str) -> AccessType:
        """Access type required to invoke ``method`` on ``model``."""
        definition = self.models.get(model)
        if definition and method in definition.method_access_types:
            return definition.method_access_types[method]
        if method in WRITE_METHODS:
            return AccessType.WRITE
        if method in READ_METHODS:
            return AccessType.READ
        return AccessType.EXECUTE

    def load_file(self, path: Union[str, Path]) -> List[ModelDefinition]:
        """Load model definitions from a YAML file."""
        with open(path, "r", encoding="utf-8") as handle:
            try:
                document = yaml.safe_load(handle) or {}
            except yaml.YAMLError as e:
                raise ValidationError("Model file is not valid YAML", {"source": str(path), "error": str(e)}) from e
        if not isinstance(document, dict):
            raise ValidationError("Model file must contain a mapping", {"source": str(path)})
        return self.load_dict(document, source=str(path))

    def load_dict(self, document: Dict[str, Any], source: str = "<dict>") -> List[ModelDefinition]:
        """Load model definitions from an already parsed document."""
        entries = document.get("models")
        if not isinstance(entries, list):
            raise ValidationError("Model document must contain a 'models' list", {"source": source})

        definitions = []
        for entry in entries:
            try:
                definitions.append(self.register(_parse_model(entry)))
            except (KeyError, TypeError, ValueError) as e:
                raise ValidationError(
                    "Invalid model definition",
                    {"source": source, "entry": entry, "error": str(e)}
                ) from e
        return definitions


def _parse_acl(data: Dict[str, Any]) -> ACLRule:
    return ACLRule(
        property=data.get("property"),
        access_type=data.get("access_type"),
        permission=data.get("permission"),
        principal_type=data["principal_type"],
        principal_id=data["principal_id"],
    )


def _parse_model(data: Dict[str, Any]) -> ModelDefinition:
    properties = data.get("properties") or {}
    default_permission = data.get("default_permission")
    return ModelDefinition(
        name=data["name"],
        acls=[_parse_acl(acl) for acl in data.get("acls") or []],
        property_acls={
            name: [_parse_acl(acl) for acl in (settings or {}).get("acls") or []]
            for name, settings in properties.items()
        },
        default_permission=Permission(default_permission) if default_permission else None,
        method_access_types={
            method: AccessType(access_type)
            for method, access_type in (data.get("methods") or {}).items()
        },
    )
