[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dsschannel"
version = "0.1.0"
description = "Signed FFDHE-2048 key exchange and AES-256-GCM encrypted records over TCP sockets"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["secure channel", "diffie-hellman", "ffdhe2048", "aes-gcm", "hkdf", "rsa", "signature"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
dsschannel-client = "dsschannel.client:main"

[tool.hatch.build.targets.wheel]
packages = ["dsschannel"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
