"""MPD schema validation.

Checks that a manifest is well-formed XML and, when an XSD is configured,
that it conforms to the DASH MPD schema. Semantic SSAI checks live in the
compliance package.
"""

from lxml import etree

from ..shared.exceptions import SchemaValidationError


def validate_mpd_schema(xml_content: str | bytes, xsd_path: str | None = None) -> bool:
    """Validate MPD XML against the DASH XSD schema.

    Args:
        xml_content: Raw XML document
        xsd_path: Path to the MPD XSD schema file (optional)

    Returns:
        True if valid

    Raises:
        SchemaValidationError: If the document is malformed or fails the schema
    """
    if isinstance(xml_content, str):
        xml_content = xml_content.encode()

    try:
        doc = etree.fromstring(xml_content)

        # Without an XSD only well-formedness is verified
        if not xsd_path:
            return True

        with open(xsd_path, "rb") as f:
            schema_doc = etree.parse(f)
            schema = etree.XMLSchema(schema_doc)

        if not schema.validate(doc):
            errors = [str(err) for err in schema.error_log]
            raise SchemaValidationError(
                "MPD schema validation failed",
                {"errors": errors, "xsd_path": xsd_path},
            )

        return True

    except etree.XMLSyntaxError as e:
        raise SchemaValidationError(
            f"XML syntax error: {e}",
            {"line": e.lineno, "column": e.offset},
        )
