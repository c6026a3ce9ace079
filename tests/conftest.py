"""Shared fixtures for podenv tests."""

import pytest

from podenv.cli_config import reset_config
from podenv.error_handling import get_error_handler

GALLERY_ENVIRONMENT_HEADER = """\
// To check if a library is compiled with CocoaPods you
// can use the `COCOAPODS` macro definition which is
// defined in the xcconfigs so it is available in
// headers also when they are imported in the client
// project.


// CocoaLumberjack
#define COCOAPODS_POD_AVAILABLE_CocoaLumberjack
#define COCOAPODS_VERSION_MAJOR_CocoaLumberjack 1
#define COCOAPODS_VERSION_MINOR_CocoaLumberjack 9
#define COCOAPODS_VERSION_PATCH_CocoaLumberjack 2

// CocoaLumberjack/Core
#define COCOAPODS_POD_AVAILABLE_CocoaLumberjack_Core
#define COCOAPODS_VERSION_MAJOR_CocoaLumberjack_Core 1
#define COCOAPODS_VERSION_MINOR_CocoaLumberjack_Core 9
#define COCOAPODS_VERSION_PATCH_CocoaLumberjack_Core 2

// CocoaLumberjack/Extensions
#define COCOAPODS_POD_AVAILABLE_CocoaLumberjack_Extensions
#define COCOAPODS_VERSION_MAJOR_CocoaLumberjack_Extensions 1
#define COCOAPODS_VERSION_MINOR_CocoaLumberjack_Extensions 9
#define COCOAPODS_VERSION_PATCH_CocoaLumberjack_Extensions 2

// FlickrKit
#define COCOAPODS_POD_AVAILABLE_FlickrKit
#define COCOAPODS_VERSION_MAJOR_FlickrKit 1
#define COCOAPODS_VERSION_MINOR_FlickrKit 0
#define COCOAPODS_VERSION_PATCH_FlickrKit 5

// HanekeSwift
#define COCOAPODS_POD_AVAILABLE_HanekeSwift
#define COCOAPODS_VERSION_MAJOR_HanekeSwift 0
#define COCOAPODS_VERSION_MINOR_HanekeSwift 9
#define COCOAPODS_VERSION_PATCH_HanekeSwift 1

// TaylorSource/Base
#define COCOAPODS_POD_AVAILABLE_TaylorSource_Base
#define COCOAPODS_VERSION_MAJOR_TaylorSource_Base 0
#define COCOAPODS_VERSION_MINOR_TaylorSource_Base 13
#define COCOAPODS_VERSION_PATCH_TaylorSource_Base 0

// TaylorSource/YapDatabase
#define COCOAPODS_POD_AVAILABLE_TaylorSource_YapDatabase
#define COCOAPODS_VERSION_MAJOR_TaylorSource_YapDatabase 0
#define COCOAPODS_VERSION_MINOR_TaylorSource_YapDatabase 13
#define COCOAPODS_VERSION_PATCH_TaylorSource_YapDatabase 0

// YapDatabase
#define COCOAPODS_POD_AVAILABLE_YapDatabase
#define COCOAPODS_VERSION_MAJOR_YapDatabase 2
#define COCOAPODS_VERSION_MINOR_YapDatabase 6
#define COCOAPODS_VERSION_PATCH_YapDatabase 5

// YapDatabase/standard
#define COCOAPODS_POD_AVAILABLE_YapDatabase_standard
#define COCOAPODS_VERSION_MAJOR_YapDatabase_standard 2
#define COCOAPODS_VERSION_MINOR_YapDatabase_standard 6
#define COCOAPODS_VERSION_PATCH_YapDatabase_standard 5

// YapDatabaseExtensions
#define COCOAPODS_POD_AVAILABLE_YapDatabaseExtensions
#define COCOAPODS_VERSION_MAJOR_YapDatabaseExtensions 1
#define COCOAPODS_VERSION_MINOR_YapDatabaseExtensions 5
#define COCOAPODS_VERSION_PATCH_YapDatabaseExtensions 0

// YapDatabaseExtensions/Common
#define COCOAPODS_POD_AVAILABLE_YapDatabaseExtensions_Common
#define COCOAPODS_VERSION_MAJOR_YapDatabaseExtensions_Common 1
#define COCOAPODS_VERSION_MINOR_YapDatabaseExtensions_Common 5
#define COCOAPODS_VERSION_PATCH_YapDatabaseExtensions_Common 0
"""

GALLERY_PODFILE_LOCK = """\
PODS:
  - CocoaLumberjack (1.9.2):
    - CocoaLumberjack/Extensions (= 1.9.2)
  - CocoaLumberjack/Core (1.9.2)
  - CocoaLumberjack/Extensions (1.9.2):
    - CocoaLumberjack/Core
  - FlickrKit (1.0.5)
  - HanekeSwift (0.9.1)
  - TaylorSource/Base (0.13.0)
  - TaylorSource/YapDatabase (0.13.0):
    - TaylorSource/Base
    - YapDatabaseExtensions (~> 1.5)
  - YapDatabase (2.6.5):
    - YapDatabase/standard (= 2.6.5)
  - YapDatabase/standard (2.6.5):
    - CocoaLumberjack (~> 1)
  - YapDatabaseExtensions (1.5.0):
    - YapDatabaseExtensions/Common (= 1.5.0)
  - "YapDatabaseExtensions/Common (1.5.0)":
    - YapDatabase (~> 2.6)

DEPENDENCIES:
  - FlickrKit
  - HanekeSwift (from `https://github.com/Haneke/HanekeSwift`)
  - TaylorSource/YapDatabase (from `../..`)

EXTERNAL SOURCES:
  HanekeSwift:
    :git: https://github.com/Haneke/HanekeSwift
  TaylorSource:
    :path: ../..

SPEC CHECKSUMS:
  CocoaLumberjack: 2800c03334042f8ed3fbd6ca17b96e2f6c7da3d4
  FlickrKit: 3f4fc8fa9e3d8a4b95bf3b7b8e48f2e7bd39d3bd

COCOAPODS: 0.37.2
"""


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep user config files and PODENV_* variables out of every test."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(home)
    for key in [
        "PODENV_MACRO_PREFIX",
        "PODENV_INCLUDE_PREAMBLE",
        "PODENV_OUTPUT_FORMAT",
        "PODENV_MAX_FILE_SIZE_MB",
        "PODENV_MAX_LINES_PER_FILE",
        "PODENV_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    get_error_handler().reset_stats()
    yield
    reset_config()


@pytest.fixture
def temp_dir(tmp_path):
    return tmp_path


@pytest.fixture
def sample_header_text():
    return GALLERY_ENVIRONMENT_HEADER


@pytest.fixture
def sample_environment_header(temp_dir):
    path = temp_dir / "Pods-environment.h"
    path.write_text(GALLERY_ENVIRONMENT_HEADER)
    return path


@pytest.fixture
def sample_podfile_lock(temp_dir):
    path = temp_dir / "Podfile.lock"
    path.write_text(GALLERY_PODFILE_LOCK)
    return path


@pytest.fixture
def yap_fragments(temp_dir):
    """Two manifest fragments that disagree on the YapDatabase patch version."""
    first = temp_dir / "app-environment.h"
    first.write_text(
        "// YapDatabase\n"
        "#define COCOAPODS_POD_AVAILABLE_YapDatabase\n"
        "#define COCOAPODS_VERSION_MAJOR_YapDatabase 2\n"
        "#define COCOAPODS_VERSION_MINOR_YapDatabase 6\n"
        "#define COCOAPODS_VERSION_PATCH_YapDatabase 5\n"
    )
    second = temp_dir / "tests-environment.h"
    second.write_text(
        "// YapDatabase\n"
        "#define COCOAPODS_POD_AVAILABLE_YapDatabase\n"
        "#define COCOAPODS_VERSION_MAJOR_YapDatabase 2\n"
        "#define COCOAPODS_VERSION_MINOR_YapDatabase 6\n"
        "#define COCOAPODS_VERSION_PATCH_YapDatabase 6\n"
    )
    return first, second
