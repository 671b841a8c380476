[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "choosme"
version = "0.1.0"
description = "Choose which desktop application opens a link, from a configured list of browsers"
requires-python = ">=3.11"
dependencies = []
keywords = ["browser", "chooser", "desktop", "xdg", "dbus", "waybar", "uri"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: X11 Applications",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Browsers",
    "Topic :: Desktop Environment",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
choosme = "choosme.app:main"

[tool.hatch.build.targets.wheel]
packages = ["choosme"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]
