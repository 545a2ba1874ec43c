"""
fieldscript script language: registry, lexer, parser and compiler.

This module provides:
- Registry: Case-insensitive table of typed built-in functions and values
- Lexer: Tokenizes script source
- Parser: Builds a flat list of lines from tokens
- Compiler: Resolves and type-checks lines into a StatementSequence

The executor and the command channel live in `fieldscript.script.runtime`.

Usage:
    from fieldscript.engine.world import build_world
    from fieldscript.script import compile_script, check_script

    registry = build_world()
    sequence = compile_script('''
        setGridSize 64 64 1
        m = vortex(1, 1).translate(10e-9, 0, 0)
        run 1e-9
    ''', registry)

    result = check_script("vortex 1", registry)
    if result.has_errors:
        print(result.diagnostics.format_all())
"""

from .tokens import (
    Token,
    TokenType,
    SourceLocation,
    SourceSpan,
)

from .lexer import (
    Lexer,
    tokenize,
)

from .parser import (
    Parser,
    parse,
)

from .ast import (
    AstNode,
    Expression,
    Literal,
    Identifier,
    FunctionCall,
    MethodCall,
    UnaryOp,
    BinaryOp,
    Line,
    ExpressionLine,
    AssignmentLine,
    Script,
)

from .types import (
    Type,
    PrimitiveType,
    ObjectType,
    INT,
    FLOAT,
    BOOL,
    STRING,
    VECTOR,
    CONFIG,
    NONE,
    ANY,
    resolve_type_name,
)

from .errors import (
    Diagnostic,
    DiagnosticCollector,
    ErrorSeverity,
    ScriptError,
    RegistryError,
    DuplicateNameError,
    NotFoundError,
    DiagnosticError,
    CompileError,
    LexerError,
    ParserError,
    TypeMismatchError,
    UnknownIdentifierError,
    ArityError,
    NotAssignableError,
    RuntimeStatementError,
    InjectionCompileError,
)

from .registry import (
    EntryKind,
    Parameter,
    RegistryEntry,
    Registry,
)

from .statements import (
    Statement,
    StatementSequence,
)

from .compiler import (
    Compiler,
    CheckResult,
    compile_script,
    compile_statement,
    check_script,
)

__all__ = [
    # Tokens
    'Token',
    'TokenType',
    'SourceLocation',
    'SourceSpan',

    # Lexer / parser
    'Lexer',
    'tokenize',
    'Parser',
    'parse',

    # AST
    'AstNode',
    'Expression',
    'Literal',
    'Identifier',
    'FunctionCall',
    'MethodCall',
    'UnaryOp',
    'BinaryOp',
    'Line',
    'ExpressionLine',
    'AssignmentLine',
    'Script',

    # Types
    'Type',
    'PrimitiveType',
    'ObjectType',
    'INT',
    'FLOAT',
    'BOOL',
    'STRING',
    'VECTOR',
    'CONFIG',
    'NONE',
    'ANY',
    'resolve_type_name',

    # Errors
    'Diagnostic',
    'DiagnosticCollector',
    'ErrorSeverity',
    'ScriptError',
    'RegistryError',
    'DuplicateNameError',
    'NotFoundError',
    'DiagnosticError',
    'CompileError',
    'LexerError',
    'ParserError',
    'TypeMismatchError',
    'UnknownIdentifierError',
    'ArityError',
    'NotAssignableError',
    'RuntimeStatementError',
    'InjectionCompileError',

    # Registry
    'EntryKind',
    'Parameter',
    'RegistryEntry',
    'Registry',

    # Compiler
    'Statement',
    'StatementSequence',
    'Compiler',
    'CheckResult',
    'compile_script',
    'compile_statement',
    'check_script',
]
