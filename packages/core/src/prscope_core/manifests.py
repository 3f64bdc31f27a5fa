"""Dependency manifest parsers, one per ecosystem file format.

Each parser takes the raw file text and returns a ``Manifest`` or None when
the file cannot be read as that format. Structured formats go through real
parsers (json, tomllib, PyYAML); the rest (go.mod, Gemfile, mix.exs, Maven,
Gradle) are matched with regular expressions, which is enough to list
names and version constraints without evaluating build scripts.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import dataclass, field
from typing import Any, Callable

import yaml

logger = logging.getLogger(__name__)

# Ordered per ecosystem; the first manifest that parses wins.
MANIFEST_FILES: dict[str, list[str]] = {
    "php": ["composer.json"],
    "javascript": ["package.json"],
    "python": ["pyproject.toml", "requirements.txt", "setup.py", "Pipfile"],
    "go": ["go.mod"],
    "rust": ["Cargo.toml"],
    "ruby": ["Gemfile"],
    "java": ["pom.xml", "build.gradle", "build.gradle.kts"],
    "swift": ["Package.swift"],
    "dart": ["pubspec.yaml"],
    "elixir": ["mix.exs"],
}

KNOWN_FRAMEWORKS: dict[str, dict[str, str]] = {
    "php": {
        "laravel/framework": "Laravel",
        "symfony/symfony": "Symfony",
        "slim/slim": "Slim",
        "cakephp/cakephp": "CakePHP",
        "yiisoft/yii2": "Yii",
    },
    "javascript": {
        "react": "React",
        "vue": "Vue.js",
        "next": "Next.js",
        "nuxt": "Nuxt",
        "@angular/core": "Angular",
        "svelte": "Svelte",
        "express": "Express",
        "fastify": "Fastify",
        "@nestjs/core": "NestJS",
    },
    "python": {
        "django": "Django",
        "flask": "Flask",
        "fastapi": "FastAPI",
        "tornado": "Tornado",
    },
    "ruby": {
        "rails": "Ruby on Rails",
        "sinatra": "Sinatra",
        "hanami": "Hanami",
    },
    "rust": {
        "actix-web": "Actix Web",
        "rocket": "Rocket",
        "axum": "Axum",
        "warp": "Warp",
    },
    "go": {
        "github.com/gin-gonic/gin": "Gin",
        "github.com/labstack/echo": "Echo",
        "github.com/gofiber/fiber": "Fiber",
    },
}

_PYTHON_REQUIREMENT_RE = re.compile(r"^([a-zA-Z0-9_.-]+)(?:\[.*?\])?\s*([<>=!~]+)\s*([^;\s]+)")
_PYTHON_NAME_RE = re.compile(r"^([a-zA-Z0-9_.-]+)(?:\[.*?\])?\s*(?:;.*)?$")


@dataclass
class Manifest:
    language: str
    runtime: dict[str, str] | None = None
    frameworks: list[dict[str, str]] = field(default_factory=list)
    dependencies: list[dict[str, Any]] = field(default_factory=list)

    def add(self, name: str, version: Any, dev: bool = False) -> None:
        version = version if isinstance(version, str) and version else "*"
        dependency: dict[str, Any] = {"name": name, "version": version}
        if dev:
            dependency["dev"] = True
        framework = KNOWN_FRAMEWORKS.get(self.language, {}).get(name.lower())
        if framework:
            self.frameworks.append({"name": framework, "version": version})
        self.dependencies.append(dependency)


def parse_python_requirement(spec: str) -> tuple[str, str] | None:
    """Split ``"django[argon2]>=4.2"`` into ``("django", ">=4.2")``."""
    spec = spec.strip()
    match = _PYTHON_REQUIREMENT_RE.match(spec)
    if match:
        return match.group(1), match.group(2) + match.group(3)
    match = _PYTHON_NAME_RE.match(spec)
    if match:
        return match.group(1), "*"
    return None


# ---------------------------------------------------------------------- #
# Structured formats                                                       #
# ---------------------------------------------------------------------- #


def parse_composer_json(content: str) -> Manifest | None:
    data = _json(content)
    if data is None:
        return None
    manifest = Manifest("php")
    require = data.get("require") if isinstance(data.get("require"), dict) else {}
    if isinstance(require.get("php"), str):
        manifest.runtime = {"name": "PHP", "version": require["php"]}
    for package, version in require.items():
        if package == "php" or package.startswith("ext-"):
            continue
        manifest.add(package, version)
    for package, version in _dict(data.get("require-dev")).items():
        manifest.add(package, version, dev=True)
    return manifest


def parse_package_json(content: str) -> Manifest | None:
    data = _json(content)
    if data is None:
        return None
    manifest = Manifest("javascript")
    node = _dict(data.get("engines")).get("node")
    if isinstance(node, str):
        manifest.runtime = {"name": "Node.js", "version": node}
    for package, version in _dict(data.get("dependencies")).items():
        manifest.add(package, version)
    for package, version in _dict(data.get("devDependencies")).items():
        manifest.add(package, version, dev=True)
    return manifest


def parse_pyproject_toml(content: str) -> Manifest | None:
    data = _toml(content)
    if data is None:
        return None
    manifest = Manifest("python")
    project = _dict(data.get("project"))
    poetry = _dict(_dict(data.get("tool")).get("poetry"))

    if isinstance(project.get("requires-python"), str):
        manifest.runtime = {"name": "Python", "version": project["requires-python"]}

    for spec in project.get("dependencies") or []:
        parsed = parse_python_requirement(spec) if isinstance(spec, str) else None
        if parsed:
            manifest.add(*parsed)
    for group in _dict(project.get("optional-dependencies")).values():
        for spec in group if isinstance(group, list) else []:
            parsed = parse_python_requirement(spec) if isinstance(spec, str) else None
            if parsed:
                manifest.add(*parsed, dev=True)

    # Poetry keeps dependencies in a table of name -> constraint.
    for name, constraint in _dict(poetry.get("dependencies")).items():
        if name == "python":
            if isinstance(constraint, str) and manifest.runtime is None:
                manifest.runtime = {"name": "Python", "version": constraint}
            continue
        manifest.add(name, _toml_version(constraint))
    for name, constraint in _dict(_dict(_dict(poetry.get("group")).get("dev")).get("dependencies")).items():
        manifest.add(name, _toml_version(constraint), dev=True)

    return manifest


def parse_pipfile(content: str) -> Manifest | None:
    data = _toml(content)
    if data is None:
        return None
    manifest = Manifest("python")
    python_version = _dict(data.get("requires")).get("python_version")
    if isinstance(python_version, str):
        manifest.runtime = {"name": "Python", "version": python_version}
    for name, constraint in _dict(data.get("packages")).items():
        manifest.add(name, _toml_version(constraint))
    for name, constraint in _dict(data.get("dev-packages")).items():
        manifest.add(name, _toml_version(constraint), dev=True)
    return manifest


def parse_cargo_toml(content: str) -> Manifest | None:
    data = _toml(content)
    if data is None:
        return None
    manifest = Manifest("rust")
    rust_version = _dict(data.get("package")).get("rust-version")
    if isinstance(rust_version, str):
        manifest.runtime = {"name": "Rust", "version": rust_version}
    for name, constraint in _dict(data.get("dependencies")).items():
        manifest.add(name, _toml_version(constraint))
    for name, constraint in _dict(data.get("dev-dependencies")).items():
        manifest.add(name, _toml_version(constraint), dev=True)
    return manifest


def parse_pubspec_yaml(content: str) -> Manifest | None:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError:
        return None
    if not isinstance(data, dict):
        return None
    manifest = Manifest("dart")
    sdk = _dict(data.get("environment")).get("sdk")
    if isinstance(sdk, str):
        manifest.runtime = {"name": "Dart", "version": sdk}
    dependencies = _dict(data.get("dependencies"))
    if "flutter" in dependencies:
        manifest.frameworks.append({"name": "Flutter", "version": "*"})
    for name, constraint in dependencies.items():
        manifest.add(name, constraint if isinstance(constraint, str) else "*")
    for name, constraint in _dict(data.get("dev_dependencies")).items():
        manifest.add(name, constraint if isinstance(constraint, str) else "*", dev=True)
    return manifest


# ---------------------------------------------------------------------- #
# Line-oriented formats                                                    #
# ---------------------------------------------------------------------- #


def parse_requirements_txt(content: str) -> Manifest:
    manifest = Manifest("python")
    for line in content.splitlines():
        line = line.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            continue
        parsed = parse_python_requirement(line)
        if parsed:
            manifest.add(*parsed)
    return manifest


def parse_go_mod(content: str) -> Manifest:
    manifest = Manifest("go")
    version = re.search(r"^go\s+(\d+\.\d+(?:\.\d+)?)", content, re.MULTILINE)
    if version:
        manifest.runtime = {"name": "Go", "version": version.group(1)}

    seen: set[str] = set()
    for match in re.finditer(r"^\s*require\s+([^\s(]+)\s+([^\s]+)", content, re.MULTILINE):
        seen.add(match.group(1))
        manifest.add(match.group(1), match.group(2))
    for block in re.finditer(r"require\s*\(\s*(.*?)\s*\)", content, re.DOTALL):
        for match in re.finditer(r"^\s*([^\s/][^\s]*)\s+([^\s]+)", block.group(1), re.MULTILINE):
            if match.group(1) not in seen:
                seen.add(match.group(1))
                manifest.add(match.group(1), match.group(2))
    return manifest


def parse_gemfile(content: str) -> Manifest:
    manifest = Manifest("ruby")
    version = re.search(r"^\s*ruby\s+[\"']([^\"']+)[\"']", content, re.MULTILINE)
    if version:
        manifest.runtime = {"name": "Ruby", "version": version.group(1)}
    for match in re.finditer(r"gem\s+[\"']([^\"']+)[\"'](?:,\s*[\"']([^\"']+)[\"'])?", content):
        manifest.add(match.group(1), match.group(2))
    return manifest


def parse_mix_exs(content: str) -> Manifest:
    manifest = Manifest("elixir")
    version = re.search(r"elixir:\s*\"([^\"]+)\"", content)
    if version:
        manifest.runtime = {"name": "Elixir", "version": version.group(1)}
    phoenix = re.search(r":phoenix,\s*\"([^\"]+)\"", content)
    if phoenix or ":phoenix" in content:
        manifest.frameworks.append({"name": "Phoenix", "version": phoenix.group(1) if phoenix else "*"})
    for match in re.finditer(r"\{:([a-z_]+),\s*\"([^\"]+)\"", content):
        manifest.dependencies.append({"name": match.group(1), "version": match.group(2)})
    return manifest


def parse_pom_xml(content: str) -> Manifest:
    manifest = Manifest("java")
    version = re.search(r"<java\.version>([^<]+)<", content) or re.search(
        r"<maven\.compiler\.source>([^<]+)<", content
    )
    if version:
        manifest.runtime = {"name": "Java", "version": version.group(1)}
    if "spring-boot" in content:
        boot = re.search(r"<spring-boot\.version>([^<]+)<", content)
        manifest.frameworks.append({"name": "Spring Boot", "version": boot.group(1) if boot else "*"})
    for block in re.finditer(r"<dependency>(.*?)</dependency>", content, re.DOTALL):
        group = re.search(r"<groupId>([^<]+)<", block.group(1))
        artifact = re.search(r"<artifactId>([^<]+)<", block.group(1))
        if not group or not artifact:
            continue
        dep_version = re.search(r"<version>([^<]+)<", block.group(1))
        scope = re.search(r"<scope>([^<]+)<", block.group(1))
        manifest.add(
            f"{group.group(1)}/{artifact.group(1)}",
            dep_version.group(1) if dep_version else "*",
            dev=bool(scope and scope.group(1) == "test"),
        )
    return manifest


def parse_gradle_build(content: str) -> Manifest:
    manifest = Manifest("java")
    version = re.search(r"sourceCompatibility\s*[=:]\s*['\"]?(\d+)['\"]?", content) or re.search(
        r"JavaLanguageVersion\.of\((\d+)\)", content
    )
    if version:
        manifest.runtime = {"name": "Java", "version": version.group(1)}
    if "spring-boot" in content:
        manifest.frameworks.append({"name": "Spring Boot", "version": "*"})
    pattern = r"(implementation|api|compile|testImplementation)\s*[(\s]['\"]([^:'\"]+):([^:'\"]+):([^'\"]+)['\"]"
    for match in re.finditer(pattern, content):
        manifest.add(f"{match.group(2)}/{match.group(3)}", match.group(4), dev=match.group(1) == "testImplementation")
    return manifest


PARSERS: dict[str, Callable[[str], Manifest | None]] = {
    "composer.json": parse_composer_json,
    "package.json": parse_package_json,
    "pyproject.toml": parse_pyproject_toml,
    "requirements.txt": parse_requirements_txt,
    "Pipfile": parse_pipfile,
    "go.mod": parse_go_mod,
    "Cargo.toml": parse_cargo_toml,
    "Gemfile": parse_gemfile,
    "pubspec.yaml": parse_pubspec_yaml,
    "mix.exs": parse_mix_exs,
    "pom.xml": parse_pom_xml,
    "build.gradle": parse_gradle_build,
    "build.gradle.kts": parse_gradle_build,
}


def parse_manifest(filename: str, content: str) -> Manifest | None:
    """Parse a manifest by filename; None for unknown or unreadable files."""
    parser = PARSERS.get(filename)
    if parser is None:
        return None
    return parser(content)


# ---------------------------------------------------------------------- #
# Helpers                                                                  #
# ---------------------------------------------------------------------- #


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _json(content: str) -> dict | None:
    try:
        data = json.loads(content)
    except ValueError:
        logger.debug("Manifest is not valid JSON.")
        return None
    return data if isinstance(data, dict) else None


def _toml(content: str) -> dict | None:
    try:
        return tomllib.loads(content)
    except tomllib.TOMLDecodeError:
        logger.debug("Manifest is not valid TOML.")
        return None


def _toml_version(constraint) -> str:
    # Cargo/Poetry/Pipfile allow either "1.0" or {version = "1.0", features = [...]}.
    if isinstance(constraint, str):
        return constraint
    if isinstance(constraint, dict) and isinstance(constraint.get("version"), str):
        return constraint["version"]
    return "*"
