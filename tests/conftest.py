"""Shared pytest fixtures for the anchorforge test suite.

Provides reusable fixtures for:
- A temporary project tree shaped like a freshly generated web app
- Sample recipes (inline text and the YAML fixture file)
- A real temporary git repository
- ForgeConfig instances pointed at the temporary project
"""

from __future__ import annotations

import os
import subprocess
import textwrap
from pathlib import Path

import pytest

from anchorforge.config import ForgeConfig, GitConfig

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Sample file contents
# ---------------------------------------------------------------------------

ROUTES_RB = textwrap.dedent("""\
    Rails.application.routes.draw do
      devise_for :users
    end
""")

DEVISE_RB = textwrap.dedent("""\
    Devise.setup do |config|
      # config.secret_key = 'abc123'

      # ==> Warden configuration
      # config.warden do |manager|
    end
""")

USER_RB = textwrap.dedent("""\
    class User < ApplicationRecord
      devise :database_authenticatable, :registerable
    end
""")

GEMFILE = textwrap.dedent("""\
    source "https://rubygems.org"

    gem "rails", "~> 7.0"
    gem "puma"
""")

OLD_MIGRATION = textwrap.dedent("""\
    class CreateWidgets < ActiveRecord::Migration[7.0]
      def change
        add_column :widgets, :admin, :boolean
      end
    end
""")

NEW_MIGRATION = textwrap.dedent("""\
    class DeviseCreateUsers < ActiveRecord::Migration[7.0]
      def change
        create_table :users do |t|
          t.boolean :admin
        end
      end
    end
""")


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary, empty project root (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


@pytest.fixture
def rails_project(tmp_project_dir: Path) -> Path:
    """Project tree with the files a typical bootstrap recipe patches.

    The two migrations get explicit mtimes so ``select: latest`` is
    deterministic.
    """
    files = {
        "config/routes.rb": ROUTES_RB,
        "config/initializers/devise.rb": DEVISE_RB,
        "app/models/user.rb": USER_RB,
        "Gemfile": GEMFILE,
        "bin/dev": "#!/usr/bin/env sh\nexec foreman start -f Procfile.dev\n",
        "db/migrate/20240101000000_create_widgets.rb": OLD_MIGRATION,
        "db/migrate/20230101000000_devise_create_users.rb": NEW_MIGRATION,
    }
    for relative, content in files.items():
        path = tmp_project_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    # The older filename is the newer file on disk.
    os.utime(tmp_project_dir / "db/migrate/20240101000000_create_widgets.rb", (1_000_000, 1_000_000))
    os.utime(
        tmp_project_dir / "db/migrate/20230101000000_devise_create_users.rb",
        (2_000_000, 2_000_000),
    )
    yield tmp_project_dir


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Temporary git repository with identity configured and no commits."""
    repo_dir = tmp_path / "test-repo"
    repo_dir.mkdir()
    subprocess.run(["git", "init"], cwd=repo_dir, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@anchorforge.local"],
        cwd=repo_dir, check=True, capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "anchorforge Test"],
        cwd=repo_dir, check=True, capture_output=True,
    )
    subprocess.run(
        ["git", "config", "commit.gpgsign", "false"],
        cwd=repo_dir, check=True, capture_output=True,
    )
    (repo_dir / "README.md").write_text("# Test Project\n", encoding="utf-8")
    yield repo_dir


@pytest.fixture
def templates_dir() -> Path:
    """Directory holding the Jinja2 templates used by create steps."""
    return FIXTURES_DIR / "templates"


# ---------------------------------------------------------------------------
# Config & recipes
# ---------------------------------------------------------------------------

@pytest.fixture
def forge_config(rails_project: Path, templates_dir: Path) -> ForgeConfig:
    """ForgeConfig rooted at the sample project, with git disabled."""
    return ForgeConfig(
        project_root=rails_project,
        project_name="demo-app",
        template_dir=templates_dir,
        git=GitConfig(enabled=False),
    )


@pytest.fixture
def sample_recipe_path() -> Path:
    """Path to the sample-recipe.yaml fixture file."""
    path = FIXTURES_DIR / "sample-recipe.yaml"
    assert path.exists(), f"Sample recipe fixture not found at {path}"
    return path


@pytest.fixture
def sample_recipe_text(sample_recipe_path: Path) -> str:
    """Raw text content of the sample recipe."""
    return sample_recipe_path.read_text(encoding="utf-8")
