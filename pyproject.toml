[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "reservation-backend"
version = "0.1.0"
description = "HTTP backend for appointment reservations: accounts, token authentication, CORS and per-IP rate limiting."
requires-python = ">=3.10"
keywords = ["reservations", "appointments", "scheduling", "wsgi", "paseto", "rate-limiting"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Office/Business :: Scheduling",
]
dependencies = [
    "werkzeug>=3.0",
    "sqlalchemy>=2.0",
    "bcrypt>=4.0",
    "pycryptodome>=3.19",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[project.scripts]
reservation-server = "reservation_backend.server:main"
reservation-migrate = "reservation_backend.migrate:main"

[tool.hatch.build.targets.wheel]
packages = ["reservation_backend"]

[tool.hatch.build.targets.sdist]
include = ["reservation_backend", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
