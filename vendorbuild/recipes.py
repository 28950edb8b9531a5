"""Per-package build recipes.

A recipe is an ordered policy table of :class:`ToolchainRule` entries. The
first rule whose version range and platform match a job decides the build
system, the feature flags and the extra arguments. Upstream projects change
toolchains between releases (PostgreSQL dropped its MSVC scripts for Meson
in 17), so thresholds live here as data and are covered by tests.
"""

from dataclasses import dataclass
from typing import Optional

from packaging.version import InvalidVersion, Version

from .cli_logger import logger

BUILD_SYSTEMS = ("autotools", "cmake", "meson", "msvc", "go", "auto")

UNIX = ("linux", "darwin")


@dataclass(frozen=True)
class FeatureFlags:
    """
    How one optional dependency is expressed on a build system's command line.

    ``enabled`` is used when the dependency was found and may reference
    ``{root}``, ``{lib_dir}``, ``{include_dir}`` and ``{library}``;
    ``disabled`` is used when it was not.
    """

    dependency: str
    enabled: tuple = ()
    disabled: tuple = ()


@dataclass(frozen=True)
class ToolchainRule:
    build_system: str
    min_version: Optional[str] = None   # inclusive
    max_version: Optional[str] = None   # exclusive
    platforms: tuple = ()               # empty: every platform
    features: tuple = ()
    extra_args: tuple = ()
    env: tuple = ()                     # (NAME, template) pairs

    def matches_version(self, version):
        v = Version(version)
        if self.min_version is not None and v < Version(self.min_version):
            return False
        if self.max_version is not None and v >= Version(self.max_version):
            return False
        return True

    def matches_platform(self, platform):
        if not self.platforms:
            return True
        return any(platform == p or platform.startswith(p + "-") for p in self.platforms)

    def matches(self, version, platform):
        return self.matches_platform(platform) and self.matches_version(version)


@dataclass(frozen=True)
class PackageRecipe:
    name: str
    rules: tuple
    required_tools: tuple = ()
    optional_tools: tuple = ()
    rpath_bin_dir: Optional[str] = None
    rpath_patterns: tuple = ()

    def select_rule(self, version, platform) -> Optional[ToolchainRule]:
        for rule in self.rules:
            if rule.matches(version, platform):
                return rule
        return None


# -------------------- PostgreSQL --------------------

POSTGRESQL_CONFIGURE_FLAGS = ("--with-readline", "--with-zlib", "--enable-debug")

POSTGRESQL_OPENSSL = FeatureFlags("openssl", enabled=("--with-openssl",), disabled=("--without-openssl",))
POSTGRESQL_ICU = FeatureFlags("icu", enabled=("--with-icu",), disabled=("--without-icu",))

POSTGRESQL = PackageRecipe(
    name="postgresql",
    rules=(
        # src/tools/msvc was removed in 17; Meson is the only Windows path from then on.
        ToolchainRule(
            "msvc", max_version="17", platforms=("windows",),
            features=(
                FeatureFlags("openssl", enabled=("openssl={root}",), disabled=("openssl=",)),
                FeatureFlags("icu", enabled=("icu={root}",), disabled=("icu=",)),
            ),
            extra_args=("asserts=1",),
        ),
        ToolchainRule(
            "meson", min_version="17", platforms=("windows",),
            features=(
                FeatureFlags("openssl", enabled=("-Dssl=openssl",), disabled=("-Dssl=none",)),
                FeatureFlags("icu", enabled=("-Dicu=enabled",), disabled=("-Dicu=disabled",)),
            ),
            extra_args=("--buildtype=debug",),
        ),
        # --with-icu/--without-icu only from 16 on.
        ToolchainRule(
            "autotools", max_version="16", platforms=UNIX,
            features=(POSTGRESQL_OPENSSL,),
            extra_args=POSTGRESQL_CONFIGURE_FLAGS,
        ),
        ToolchainRule(
            "autotools", min_version="16", platforms=UNIX,
            features=(POSTGRESQL_OPENSSL, POSTGRESQL_ICU),
            extra_args=POSTGRESQL_CONFIGURE_FLAGS,
        ),
    ),
    rpath_bin_dir="src/bin",
    rpath_patterns=("*/pgsql/lib/*", "*/postgresql*/src/*"),
)

# -------------------- MySQL --------------------

MYSQL_CMAKE_FLAGS = (
    "-DCMAKE_BUILD_TYPE=RelWithDebInfo",
    "-DDOWNLOAD_BOOST=1",
    "-DWITH_BOOST={source_dir}/boost",
    "-DWITH_DEBUG=1",
    "-DWITH_ZLIB=bundled",
    "-DWITHOUT_SERVER=ON",
)

MYSQL_FEATURES = (
    # MySQL cannot build without TLS; its own copy is the explicit fallback.
    FeatureFlags("openssl", enabled=("-DWITH_SSL={root}",), disabled=("-DWITH_SSL=bundled",)),
    FeatureFlags("ncurses", enabled=("-DCURSES_LIBRARY={library}", "-DCURSES_INCLUDE_PATH={include_dir}")),
)

MYSQL = PackageRecipe(
    name="mysql",
    rules=(
        ToolchainRule(
            "cmake", platforms=("darwin-rosetta",),
            features=MYSQL_FEATURES,
            extra_args=MYSQL_CMAKE_FLAGS + ("-DCMAKE_OSX_ARCHITECTURES=x86_64",),
        ),
        ToolchainRule("cmake", features=MYSQL_FEATURES, extra_args=MYSQL_CMAKE_FLAGS),
    ),
    required_tools=("cmake",),
    optional_tools=("bison",),
    rpath_bin_dir="build/bin",
    rpath_patterns=("*/mysql*/build/*", "*/mysql*/lib/*"),
)

# -------------------- MongoDB tools --------------------

MONGO_TOOLS_ARGS = ("-pkgs=mongodump,mongorestore",)

MONGO_TOOLS = PackageRecipe(
    name="mongo-tools",
    rules=(
        ToolchainRule(
            "go", platforms=("darwin-rosetta",),
            extra_args=MONGO_TOOLS_ARGS,
            env=(("GOARCH", "amd64"), ("GOOS", "darwin"), ("CGO_ENABLED", "1")),
        ),
        ToolchainRule("go", extra_args=MONGO_TOOLS_ARGS, env=(("CGO_ENABLED", "1"),)),
    ),
)

DEFAULT_RECIPES = {recipe.name: recipe for recipe in (POSTGRESQL, MYSQL, MONGO_TOOLS)}

# Conventional flag vocabulary for packages without a recipe. Meson rejects
# unknown -D options, so it gets none.
GENERIC_FEATURE_TEMPLATES = {
    "autotools": (("--with-{dependency}",), ("--without-{dependency}",)),
    "cmake": (("-DWITH_{DEPENDENCY}=ON",), ("-DWITH_{DEPENDENCY}=OFF",)),
}


def generic_recipe(name, dependencies=()):
    """Recipe for a package nobody described: the build system is auto-detected."""
    return PackageRecipe(
        name=name,
        rules=(ToolchainRule("auto", features=tuple(FeatureFlags(dep) for dep in dependencies)),),
    )


def generic_feature_flags(build_system, dependency):
    templates = GENERIC_FEATURE_TEMPLATES.get(build_system)
    if templates is None:
        return FeatureFlags(dependency)
    enabled, disabled = templates
    fmt = {"dependency": dependency, "DEPENDENCY": dependency.upper().replace("-", "_")}
    return FeatureFlags(
        dependency,
        enabled=tuple(t.format(**fmt) for t in enabled),
        disabled=tuple(t.format(**fmt) for t in disabled),
    )


# -------------------- vendorbuild.toml --------------------

def _tuple(value):
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _check_version(value, where):
    if value is None:
        return None
    value = str(value)
    try:
        Version(value)
    except InvalidVersion:
        raise ValueError(f"{where}: '{value}' is not a valid version")
    return value


def rule_from_config(table, where):
    build_system = table.get("build_system", "auto")
    if build_system not in BUILD_SYSTEMS:
        raise ValueError(f"{where}: unknown build_system '{build_system}'")

    features = []
    for dependency, flags in (table.get("features") or {}).items():
        flags = flags or {}
        features.append(FeatureFlags(dependency, _tuple(flags.get("enabled")), _tuple(flags.get("disabled"))))

    return ToolchainRule(
        build_system=build_system,
        min_version=_check_version(table.get("min_version"), where),
        max_version=_check_version(table.get("max_version"), where),
        platforms=_tuple(table.get("platforms")),
        features=tuple(features),
        extra_args=_tuple(table.get("extra_args")),
        env=tuple((str(k), str(v)) for k, v in (table.get("env") or {}).items()),
    )


def get_recipes(conf=None):
    """
    Built-in recipes merged with the ``[packages.<name>]`` tables of a
    loaded ``vendorbuild.toml``. A configured ``rules`` list replaces the
    built-in policy table of that package.
    """
    recipes = dict(DEFAULT_RECIPES)
    for name, table in (conf or {}).get("packages", {}).items():
        if not isinstance(table, dict):
            logger.warning(f"Ignoring [packages.{name}]: expected a table.")
            continue
        try:
            rules = tuple(
                rule_from_config(rule, f"[packages.{name}] rule {index + 1}")
                for index, rule in enumerate(table.get("rules", []))
            )
        except (ValueError, AttributeError) as e:
            logger.error(f"Ignoring [packages.{name}]: {e}")
            continue

        base = recipes.get(name)
        if not rules and base is None:
            logger.warning(f"Ignoring [packages.{name}]: no rules given.")
            continue
        recipes[name] = PackageRecipe(
            name=name,
            rules=rules or base.rules,
            required_tools=_tuple(table.get("required_tools", base.required_tools if base else ())),
            optional_tools=_tuple(table.get("optional_tools", base.optional_tools if base else ())),
            rpath_bin_dir=table.get("rpath_bin_dir", base.rpath_bin_dir if base else None),
            rpath_patterns=_tuple(table.get("rpath_patterns", base.rpath_patterns if base else ())),
        )
    return recipes
