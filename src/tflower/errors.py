from __future__ import annotations


class ConversionError(Exception):
    """Terminal import failure with an error code and the offending node, if any."""

    def __init__(
        self, message: str, code: str = "ECONVERT", node_name: str | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.node_name = node_name


class ResolutionError(ConversionError):
    """An input reference names no node, or two records share a name."""

    def __init__(self, reference: str, node_name: str, message: str | None = None) -> None:
        super().__init__(
            message or f"cannot find input '{reference}' for node '{node_name}'",
            code="ERESOLVE",
            node_name=node_name,
        )
        self.reference = reference


class PatternMismatchError(ConversionError):
    def __init__(self, message: str, node_name: str | None = None) -> None:
        super().__init__(message, code="EPATTERN", node_name=node_name)


class MissingTranslatorError(ConversionError):
    def __init__(self, op_type: str, node_name: str) -> None:
        super().__init__(
            f"cannot find translator for operator '{op_type}' (node '{node_name}')",
            code="ENOTRANSLATOR",
            node_name=node_name,
        )
        self.op_type = op_type


class AttributeDecodeError(ConversionError):
    def __init__(self, message: str, node_name: str | None = None) -> None:
        super().__init__(message, code="EATTR", node_name=node_name)
