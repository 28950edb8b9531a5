import os

from ..cli_logger import logger

REQUIRED_TOOLS = {
    "autotools": ["make"],
    "cmake": ["cmake"],
    "meson": ["meson", "ninja"],
    "msvc": ["perl", "msbuild"],
    "go": ["go"],
}

def _autodetect_config_type(package_source_path: str, package_name: str) -> str:
    if os.path.exists(os.path.join(package_source_path, "configure")):
        logger.info("  - Found 'configure' script, assuming autotools.")
        return "autotools"
    elif os.path.exists(os.path.join(package_source_path, "meson.build")):
        logger.info("  - Found 'meson.build', assuming meson.")
        return "meson"
    elif os.path.exists(os.path.join(package_source_path, "CMakeLists.txt")):
        logger.info("  - Found 'CMakeLists.txt', assuming cmake.")
        return "cmake"
    elif os.path.exists(os.path.join(package_source_path, "build.go")):
        logger.info("  - Found 'build.go', assuming go.")
        return "go"
    else:
        logger.warning(f"  - Could not auto-detect build system for {package_name}.")
        return ""


def _perl_quote(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _write_msvc_config(package_source_path: str, settings: list[str]) -> str:
    """
    Writes src/tools/msvc/config.pl, the MSVC build's equivalent of
    configure flags. ``key=value`` sets an option, ``key=`` leaves it undef.
    """
    config_path = os.path.join(package_source_path, "src", "tools", "msvc", "config.pl")
    os.makedirs(os.path.dirname(config_path), exist_ok=True)

    with open(config_path, "w") as f:
        f.write("# Generated by vendorbuild\n")
        f.write("use strict;\nuse warnings;\n\n")
        for setting in settings:
            key, _, value = setting.partition("=")
            key = key.strip()
            if not key:
                continue
            if value == "":
                f.write(f"$config->{{{key}}} = undef;\n")
            elif value.isdigit():
                f.write(f"$config->{{{key}}} = {value};\n")
            else:
                f.write(f"$config->{{{key}}} = {_perl_quote(value)};\n")
        f.write("\n1;\n")
    return config_path


def _generate_autotools_commands(
    package_name: str,
    package_source_path: str,
    install_dir: str,
    jobs: int,
    configure_args: list[str],
    platform: str,
) -> dict:
    logger.info("  - Generating autotools build commands.")
    configure_cmd = [
        os.path.join(package_source_path, "configure"),
        f"--prefix={install_dir}",
    ] + configure_args
    build_cmd = ["make", f"-j{jobs}"]
    install_cmd = ["make", "install"]
    return {
        "configure_command": configure_cmd,
        "build_command": build_cmd,
        "install_command": install_cmd,
        "cwd": package_source_path,
    }

def _generate_cmake_commands(
    package_name: str,
    package_source_path: str,
    install_dir: str,
    jobs: int,
    configure_args: list[str],
    platform: str,
) -> dict:
    logger.info(f"  - Generating CMake build commands for {package_name}.")

    # Out-of-tree: keeps the source clean and avoids CMake cache bleed.
    build_dir = os.path.join(package_source_path, "build")

    configure_cmd = [
        "cmake",
        "-S", package_source_path,
        "-B", build_dir,
        f"-DCMAKE_INSTALL_PREFIX={install_dir}",
    ] + configure_args

    build_cmd = ["cmake", "--build", build_dir, "--parallel", str(jobs)]
    install_cmd = ["cmake", "--install", build_dir]
    return {
        "configure_command": configure_cmd,
        "build_command": build_cmd,
        "install_command": install_cmd,
        "cwd": package_source_path,
        "build_dir": build_dir,
    }

def _generate_meson_commands(
    package_name: str,
    package_source_path: str,
    install_dir: str,
    jobs: int,
    configure_args: list[str],
    platform: str,
) -> dict:
    logger.info(f"  - Generating Meson build commands for {package_name}.")

    build_dir = os.path.join(package_source_path, "build")

    configure_cmd = [
        "meson", "setup", build_dir, package_source_path,
        f"--prefix={install_dir}",
    ] + configure_args

    build_cmd = ["meson", "compile", "-C", build_dir, "-j", str(jobs)]
    install_cmd = ["meson", "install", "-C", build_dir]
    return {
        "configure_command": configure_cmd,
        "build_command": build_cmd,
        "install_command": install_cmd,
        "cwd": package_source_path,
        "build_dir": build_dir,
    }

def _generate_msvc_commands(
    package_name: str,
    package_source_path: str,
    install_dir: str,
    jobs: int,
    configure_args: list[str],
    platform: str,
) -> dict:
    logger.info(f"  - Generating MSVC build commands for {package_name}.")

    msvc_dir = os.path.join(package_source_path, "src", "tools", "msvc")
    config_path = _write_msvc_config(package_source_path, configure_args)
    logger.info(f"  - Wrote {config_path}")

    configure_cmd = ["perl", "mkvcbuild.pl"]
    build_cmd = [
        "msbuild", "pgsql.sln",
        f"/m:{jobs}",
        "/p:Configuration=Release",
        "/verbosity:minimal",
    ]
    install_cmd = ["perl", "install.pl", install_dir]
    return {
        "configure_command": configure_cmd,
        "build_command": build_cmd,
        "install_command": install_cmd,
        "configure_cwd": msvc_dir,
        "cwd": package_source_path,
        "install_cwd": msvc_dir,
    }

def _generate_go_commands(
    package_name: str,
    package_source_path: str,
    install_dir: str,
    jobs: int,
    configure_args: list[str],
    platform: str,
) -> dict:
    logger.info(f"  - Generating Go build commands for {package_name}.")

    if platform == "windows" or not os.path.exists(os.path.join(package_source_path, "make")):
        build_cmd = ["go", "run", "build.go", "build"] + configure_args
    else:
        build_cmd = ["./make", "build"] + configure_args
    if platform == "darwin-rosetta":
        build_cmd = ["arch", "-x86_64"] + build_cmd

    return {
        "configure_command": [],
        "build_command": build_cmd,
        "install_command": [],
        "cwd": package_source_path,
        # go's own scheduler takes the parallelism degree through GOFLAGS.
        "env": {"GOFLAGS": f"-p={jobs}"},
    }


COMMAND_GENERATORS = {
    "autotools": _generate_autotools_commands,
    "cmake": _generate_cmake_commands,
    "meson": _generate_meson_commands,
    "msvc": _generate_msvc_commands,
    "go": _generate_go_commands,
}


def resolve_feature_args(features, resolved_dependencies, context=None) -> list[str]:
    """
    Translates located dependencies into a build system's flags.

    A found dependency contributes its ``enabled`` flags, with paths filled
    in; a missing one contributes its ``disabled`` flags, so a feature is
    never left to the build system's own guess.
    """
    args = []
    for feature in features:
        found = resolved_dependencies.get(feature.dependency)
        if found is not None:
            values = dict(context or {})
            values.update(root=found.root, lib_dir=found.lib_dir, include_dir=found.include_dir,
                          library=found.library or found.lib_dir)
            args.extend(template.format(**values) for template in feature.enabled)
        else:
            if not feature.disabled:
                logger.warning(f"  - {feature.dependency} not found and the build has no switch to disable it.")
            args.extend(feature.disabled)
    return args


def resolve_config_type(
    package_name: str,
    build_system: str,
    package_source_path: str,
    install_dir: str,
    jobs: int,
    configure_args: list[str] = (),
    platform: str = "linux",
) -> dict:
    """
    This module only resolves commands; build execution is elsewhere.

    Args:
        package_name (str): The name of the package.
        build_system (str): One of the keys of COMMAND_GENERATORS, or "auto".
        package_source_path (str): The absolute path to the package's source directory.
        install_dir (str): The installation prefix for the package.
        jobs (int): Parallelism degree handed to the build tool.
        configure_args (list): Feature and recipe flags in the build system's vocabulary.
        platform (str): Platform key (linux, darwin, darwin-rosetta, windows).

    Returns:
        dict: 'build_system', 'configure_command', 'build_command', 'install_command'
              (empty lists mean the stage is skipped) plus working directories,
              'build_dir' and extra 'env' entries where the build system needs them.

    Raises:
        ValueError: If the build system is unsupported or cannot be detected.
    """
    if build_system == "auto":
        build_system = _autodetect_config_type(package_source_path, package_name)
        logger.info(f"Resolving configuration for {package_name} with auto-detection. Detected: {build_system if build_system else 'None'}")
        if not build_system:
            raise ValueError(f"No build system found for {package_name}.")
    else:
        logger.info(f"Resolving configuration for {package_name} with build system: {build_system}")

    if build_system not in COMMAND_GENERATORS:
        raise ValueError(f"Unsupported build system: {build_system} for package {package_name}.")

    commands = COMMAND_GENERATORS[build_system](
        package_name,
        package_source_path,
        install_dir,
        jobs,
        list(configure_args),
        platform,
    )
    commands["build_system"] = build_system
    commands.setdefault("configure_cwd", commands["cwd"])
    commands.setdefault("install_cwd", commands["cwd"])
    commands.setdefault("env", {})
    return commands
