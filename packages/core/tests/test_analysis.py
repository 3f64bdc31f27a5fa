"""Tests for structural source analysis."""

from prscope_core.analysis import CompositeAnalyzer, PythonAnalyzer

SOURCE = '''\
import os
from .models import Order, Item
from django.http import JsonResponse


def calculate_total(items):
    return sum(i.price for i in items)


class Cart:
    def add(self, item):
        self.items.append(item)

    async def checkout(self):
        total = calculate_total(self.items)
        return JsonResponse({"total": total})
'''


class TestPythonAnalyzer:
    def test_structure(self):
        summary = PythonAnalyzer().analyze("shop/cart.py", SOURCE)

        assert summary["language"] == "python"
        assert summary["functions"] == [{"name": "calculate_total", "line_start": 6, "line_end": 7}]
        cart = summary["classes"][0]
        assert (cart["name"], cart["line_start"], cart["line_end"]) == ("Cart", 10, 16)
        assert [m["name"] for m in cart["methods"]] == ["add", "checkout"]
        assert summary["errors"] == []

    def test_imports(self):
        imports = PythonAnalyzer().analyze("shop/cart.py", SOURCE)["imports"]
        assert imports == [
            {"module": "os", "names": []},
            {"module": ".models", "names": ["Order", "Item"]},
            {"module": "django.http", "names": ["JsonResponse"]},
        ]

    def test_calls_deduplicated(self):
        calls = PythonAnalyzer().analyze("shop/cart.py", SOURCE)["calls"]
        assert "calculate_total" in calls
        assert "append" in calls
        assert "JsonResponse" in calls
        assert len(calls) == len(set(calls))

    def test_syntax_error_reported_not_raised(self):
        summary = PythonAnalyzer().analyze("broken.py", "def broken(:\n")
        assert summary["functions"] == []
        assert summary["errors"][0].startswith("SyntaxError")


class TestCompositeAnalyzer:
    def test_supports_registered_extensions(self):
        analyzer = CompositeAnalyzer()
        assert analyzer.supports("a/b.py")
        assert analyzer.supports("stubs/x.pyi")
        assert not analyzer.supports("a/b.php")

    def test_analyze_files_skips_unsupported(self):
        results = CompositeAnalyzer().analyze_files({"a.py": "x = 1\n", "b.php": "<?php"})
        assert list(results) == ["a.py"]

    def test_unsupported_file_gets_empty_summary(self):
        summary = CompositeAnalyzer().analyze("b.php", "<?php")
        assert summary["language"] == "php"
        assert summary["functions"] == []
