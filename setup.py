from pathlib import PurePath

from setuptools import find_packages, setup

version = "0.1.0"


def load_requirements(path: PurePath) -> list[str]:
    """Load dependencies from a requirements.txt style file, ignoring comments etc."""
    res = []
    with open(path) as fd:
        for line in fd.readlines():
            while line.endswith("\n") or line.endswith("\\"):
                line = line[:-1]
            line = line.strip()
            if not line or line.startswith("-") or line.startswith("#"):
                continue
            res += [line]
    return res


here = PurePath(__file__)
README = open(here.with_name("README.md")).read()

install_requires = load_requirements(here.with_name("requirements.txt"))
test_requires = load_requirements(here.with_name("test_requirements.txt"))

setup(
    name="satosa-yubikey",
    version=version,
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"satosa_yubikey": ["templates/*.jinja2"]},
    license="BSD-2-Clause",
    keywords="satosa yubikey otp mfa",
    description="YubiKey OTP second factor micro service for SATOSA",
    long_description=README,
    long_description_content_type="text/markdown",
    python_requires=">=3.10",
    install_requires=install_requires,
    extras_require={"testing": test_requires},
    include_package_data=True,
)
