"""Collaborator fakes shared by the orchestration tests."""

import asyncio

import pytest
from ezdb_codegen.build import BuildToolchain, ToolResult
from ezdb_core.config import BuildSettings, RunConfig
from ezdb_core.errors import ConnectivityError
from ezdb_core.selector import CandidateObject
from ezdb_introspect.providers.base import ScaffoldedArtifact, ScaffoldProvider, ScaffoldRequest, ScaffoldResult
from sqlalchemy import Column, Integer, String
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase


class FakeProvider(ScaffoldProvider):
    """Returns two artifacts per database; raises for databases listed in ``fail``."""

    def __init__(self, fail=(), delays=None, on_call=None):
        self.fail = set(fail)
        self.delays = delays or {}
        self.on_call = on_call
        self.requests: list[ScaffoldRequest] = []

    async def scaffold(self, request: ScaffoldRequest) -> ScaffoldResult:
        self.requests.append(request)
        if self.on_call is not None:
            self.on_call(request)
        await asyncio.sleep(self.delays.get(request.database, 0))
        if request.database in self.fail:
            raise ConnectivityError(f"Login failed for {request.database}; Password=hunter2")
        return ScaffoldResult(
            entry_point=ScaffoldedArtifact(f"{request.context_name}.cs", f"class {request.context_name} {{}}\n"),
            artifacts=[ScaffoldedArtifact("Orders.cs", "class Orders {}\n")],
        )


class FakeToolchain(BuildToolchain):
    """Records calls; fails or raises in compile/package for the named projects."""

    def __init__(self, compile_fail=(), package_fail=(), raises=None):
        self.compile_fail = set(compile_fail)
        self.package_fail = set(package_fail)
        self.raises = raises or {}
        self.calls: list[tuple[str, str]] = []

    async def compile(self, project):
        self.calls.append(("compile", project.stem))
        if ("compile", project.stem) in self.raises:
            raise self.raises[("compile", project.stem)]
        if project.stem in self.compile_fail:
            return ToolResult(returncode=1, stdout="error CS0246: type not found")
        return ToolResult(returncode=0)

    async def package(self, project, output_dir):
        self.calls.append(("package", project.stem))
        if ("package", project.stem) in self.raises:
            raise self.raises[("package", project.stem)]
        if project.stem in self.package_fail:
            return ToolResult(returncode=1, stderr="error NU5026: file not found")
        return ToolResult(returncode=0)


class FakeInventory:
    """Database-granularity inventory backed by a fixed list."""

    def __init__(self, names):
        self.names = list(names)
        self.fetched = False

    async def fetch(self):
        self.fetched = True
        return [CandidateObject(name) for name in self.names]


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_toolchain():
    return FakeToolchain


@pytest.fixture
def make_inventory():
    return FakeInventory


@pytest.fixture
def run_config(tmp_path):
    return RunConfig(
        connection="Server=db01;Integrated Security=True",
        output_path=tmp_path / "output",
        assembly_prefix="Acme",
        build=BuildSettings(),
    )


class Base(DeclarativeBase):
    pass


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True)
    name = Column(String(80), nullable=False)


@pytest.fixture
async def sqlite_url(tmp_path):
    """A SQLite database with one table."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'Catalog.db'}"
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    return url
