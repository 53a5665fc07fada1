"""Draft-07 JSON Schemas for the MCP tool inputs."""

_PACKAGE_ID = {"type": "string", "minLength": 1, "pattern": r"^[A-Za-z0-9_.\-]+$"}
_VERSION = {"type": "string", "minLength": 1}
_ASSEMBLY = {"type": "string", "minLength": 1}
_FRAMEWORK = {"type": "string", "minLength": 1, "pattern": r"^[A-Za-z0-9_.\-+]+$"}

SEARCH_PACKAGES_INPUT = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["text"],
    "properties": {
        "text": {"type": "string", "minLength": 1},
        "maxResults": {"type": "integer", "minimum": 1, "maximum": 1000},
    },
    "additionalProperties": False,
}

PACKAGE_DETAILS_INPUT = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["packageId"],
    "properties": {"packageId": _PACKAGE_ID},
    "additionalProperties": False,
}

PACKAGE_ASSEMBLIES_INPUT = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["packageId"],
    "properties": {"packageId": _PACKAGE_ID, "version": _VERSION},
    "additionalProperties": False,
}

ANALYZE_ASSEMBLY_INPUT = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["packageId"],
    "properties": {
        "packageId": _PACKAGE_ID,
        "assemblyName": _ASSEMBLY,
        "version": _VERSION,
        "targetFramework": _FRAMEWORK,
    },
    "additionalProperties": False,
}

ANALYZE_ALL_ASSEMBLIES_INPUT = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["packageId"],
    "properties": {
        "packageId": _PACKAGE_ID,
        "version": _VERSION,
        "targetFramework": _FRAMEWORK,
    },
    "additionalProperties": False,
}

TYPE_MEMBERS_INPUT = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["packageId", "typeName"],
    "properties": {
        "packageId": _PACKAGE_ID,
        "assemblyName": _ASSEMBLY,
        "typeName": {"type": "string", "minLength": 1},
        "version": _VERSION,
        "targetFramework": _FRAMEWORK,
        "memberNameFilter": {"type": "string"},
        "memberType": {"type": "string", "enum": ["*", "method", "property", "field", "event", "constructor"]},
        "publicOnly": {"type": "boolean"},
        "comment": {"type": "boolean"},
        "includeBaseMembers": {"type": "boolean"},
    },
    "additionalProperties": False,
}

SEARCH_TYPES_INPUT = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["packageId"],
    "properties": {
        "packageId": _PACKAGE_ID,
        "assemblyName": _ASSEMBLY,
        "namePattern": {"type": "string"},
        "version": _VERSION,
        "targetFramework": _FRAMEWORK,
        "typeFilter": {"type": "string", "enum": ["*", "class", "interface", "enum", "struct", "delegate"]},
        "publicOnly": {"type": "boolean"},
        "maxResults": {"type": "integer", "minimum": 0},
        "comment": {"type": "boolean"},
    },
    "additionalProperties": False,
}
