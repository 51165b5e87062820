"""
Configuration constants for C# call-site scanning.

Defines the tree-sitter node type strings the scanner and the local type
resolver react to.
"""

from typing import Dict, Set

CSHARP_EXTENSIONS: Set[str] = {".cs"}

# Directories never scanned for sources
SKIPPED_DIRECTORIES: Set[str] = {
    "bin",
    "obj",
    "node_modules",
    "packages",
    "TestResults",
    "artifacts",
    "__pycache__",
}

INVOCATION_NODE: str = "invocation_expression"
METHOD_DECLARATION_NODE: str = "method_declaration"
ATTRIBUTE_LIST_NODE: str = "attribute_list"

NAMESPACE_NODES: Set[str] = {
    "namespace_declaration",
    "file_scoped_namespace_declaration",
}

TYPE_DECLARATION_NODES: Set[str] = {
    "class_declaration",
    "struct_declaration",
    "record_declaration",
    "record_struct_declaration",
    "interface_declaration",
}

# Members contributing a segment to the containing symbol
MEMBER_DECLARATION_NODES: Set[str] = {
    "method_declaration",
    "constructor_declaration",
    "destructor_declaration",
    "property_declaration",
    "operator_declaration",
    "local_function_statement",
}

# Nodes declaring parameters visible in their body
PARAMETER_SCOPE_NODES: Set[str] = {
    "method_declaration",
    "constructor_declaration",
    "local_function_statement",
    "lambda_expression",
    "anonymous_method_expression",
    "operator_declaration",
    "conversion_operator_declaration",
}

# Regions a scope without an explicit using body stays open for
SCOPE_REGION_NODES: Set[str] = {
    "block",
    "switch_section",
    "arrow_expression_clause",
    "lambda_expression",
    "compilation_unit",
}

USING_STATEMENT_NODE: str = "using_statement"

# Statement containers whose earlier statements may declare locals
STATEMENT_CONTAINERS: Set[str] = {
    "block",
    "switch_section",
    "global_statement",
    "compilation_unit",
}

MODIFIER_KEYWORDS: Set[str] = {
    "public", "private", "protected", "internal", "static", "partial",
    "readonly", "abstract", "virtual", "override", "sealed", "async",
    "extern", "unsafe", "new", "const", "required", "file", "volatile",
}

STRING_LITERAL_NODES: Set[str] = {
    "string_literal",
    "verbatim_string_literal",
    "raw_string_literal",
}

ARRAY_NODES: Set[str] = {
    "array_creation_expression",
    "implicit_array_creation_expression",
    "stackalloc_array_creation_expression",
    "collection_expression",
}

OBJECT_CREATION_NODES: Set[str] = {
    "object_creation_expression",
    "implicit_object_creation_expression",
}

LAMBDA_NODES: Set[str] = {"lambda_expression", "anonymous_method_expression"}

MEMBER_ACCESS_NODES: Set[str] = {"member_access_expression", "qualified_name"}

# Result types of well-known members, keyed by "Receiver.Member"
WELL_KNOWN_MEMBER_TYPES: Dict[str, str] = {
    "string.Empty": "string",
    "String.Empty": "string",
    "DateTime.Now": "DateTime",
    "DateTime.UtcNow": "DateTime",
    "DateTime.Today": "DateTime",
    "DateTimeOffset.Now": "DateTimeOffset",
    "DateTimeOffset.UtcNow": "DateTimeOffset",
    "Guid.Empty": "Guid",
    "TimeSpan.Zero": "TimeSpan",
    "Environment.MachineName": "string",
    "Environment.ProcessId": "int",
    "Environment.CurrentManagedThreadId": "int",
}

WELL_KNOWN_CALL_TYPES: Dict[str, str] = {
    "Guid.NewGuid": "Guid",
    "string.Format": "string",
    "string.Join": "string",
    "string.Concat": "string",
    "String.Format": "string",
    "String.Join": "string",
    "String.Concat": "string",
}

# Trailing members whose type does not depend on the receiver
WELL_KNOWN_MEMBER_SUFFIXES: Dict[str, str] = {
    "Length": "int",
    "Count": "int",
    "Message": "string",
}

# Container types whose initializers are sequences of name/value pairs
PAIR_CONTAINER_SUFFIXES: tuple = ("Dictionary", "KeyValuePair")
