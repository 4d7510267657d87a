"""Setup configuration for the Elaina Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="elaina",
    version="0.1.0",
    description="A conversational Discord bot with media helpers and AI-assisted group moderation",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiosqlite>=0.20",
        "openai>=1.40",
        "jsonschema>=4.0",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
        "requests>=2.31",
        "Pillow>=10.0",
        "pillow-heif>=0.16",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "elaina=elaina.main:main",
        ],
    },
)
