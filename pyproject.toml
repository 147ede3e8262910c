[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wiretemplate"
version = "0.1.0"
description = "A layered web application skeleton with JWT auth, Redis caching, MySQL access and scheduled jobs."
requires-python = ">=3.10"
keywords = ["web", "flask", "template", "jwt", "redis", "mysql", "scheduler"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "pyyaml",
    "pyjwt",
    "redis",
    "sqlalchemy",
    "flask",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
wiretemplate-server = "wiretemplate.web:main"
wiretemplate-command = "wiretemplate.command:main"

[tool.hatch.build.targets.wheel]
packages = ["wiretemplate"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
