"""Tests for docstring parsing."""

import inspect

from mcpdecl.kernel.docstrings import DocComment, parse_docstring


def test_empty():
    assert parse_docstring(None) == DocComment()
    assert parse_docstring("") == DocComment()


def test_description_paragraphs():
    doc = parse_docstring("Get the weather.\n\nUses the default provider\nwhen none is set.")
    assert doc.description == "Get the weather.\n\nUses the default provider when none is set."
    assert doc.param_descriptions == {}


def test_google_style():
    doc = parse_docstring(inspect.cleandoc(
        """
        Search documents.

        Args:
            query (str): Free-text query
                spanning two lines
            limit: Maximum results
            **filters: Extra filters

        Returns:
            Matching documents
        """
    ))
    assert doc.description == "Search documents."
    assert doc.param_descriptions == {
        "query": "Free-text query spanning two lines",
        "limit": "Maximum results",
        "filters": "Extra filters",
    }


def test_sphinx_style():
    doc = parse_docstring(inspect.cleandoc(
        """
        Send an email.

        :param to: Recipient address
        :param str body: Message body
        :returns: Message id
        """
    ))
    assert doc.description == "Send an email."
    assert doc.param_descriptions == {"to": "Recipient address", "body": "Message body"}


def test_numpy_style():
    doc = parse_docstring(inspect.cleandoc(
        """
        Convert a temperature.

        Parameters
        ----------
        value : float
            Temperature to convert
        unit : str
            Target unit

        Returns
        -------
        float
        """
    ))
    assert doc.description == "Convert a temperature."
    assert doc.param_descriptions == {"value": "Temperature to convert", "unit": "Target unit"}


def test_numpy_other_section_ends_description():
    doc = parse_docstring(inspect.cleandoc(
        """
        Compute totals.

        Notes
        -----
        Values are summed in order.
        """
    ))
    assert doc.description == "Compute totals."
