from infrastructure.identifiers import qualified_table, quote_identifier


def test_quote_plain_name():
    assert quote_identifier("users") == '"users"'


def test_quote_doubles_embedded_quotes():
    assert quote_identifier('we"ird') == '"we""ird"'
    assert quote_identifier('a""b') == '"a""""b"'


def test_quote_empty_returns_empty_string():
    assert quote_identifier("") == ""
    assert quote_identifier(None) == ""


def test_quote_keeps_other_characters():
    assert quote_identifier("Order Items; DROP") == '"Order Items; DROP"'


def test_qualified_table_defaults_to_public():
    assert qualified_table("users") == 'public."users"'
    assert qualified_table("t", schema="audit") == 'audit."t"'
