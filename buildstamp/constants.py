"""Names and defaults shared across buildstamp."""


class EnvVars:
    """Build environment variables read by the environment reader."""

    # Required baseline
    COMPILER = "BUILD_COMPILER"
    TARGET = "BUILD_TARGET"

    # Optional baseline
    HOST = "BUILD_HOST"
    PROFILE = "BUILD_PROFILE"
    FEATURES = "BUILD_FEATURES"  # Comma or whitespace separated
    FEATURE_PREFIX = "BUILD_FEATURE_"  # One variable per enabled feature
    OUT_DIR = "BUILD_OUT_DIR"
    SOURCE_DIR = "BUILD_SOURCE_DIR"
    OPT_LEVEL = "BUILD_OPT_LEVEL"
    DEBUG = "BUILD_DEBUG"
    NUM_JOBS = "BUILD_NUM_JOBS"

    # Package metadata
    PKG_NAME = "BUILD_PKG_NAME"
    PKG_VERSION = "BUILD_PKG_VERSION"
    PKG_AUTHORS = "BUILD_PKG_AUTHORS"
    PKG_DESCRIPTION = "BUILD_PKG_DESCRIPTION"
    PKG_HOMEPAGE = "BUILD_PKG_HOMEPAGE"
    PKG_REPOSITORY = "BUILD_PKG_REPOSITORY"
    PKG_LICENSE = "BUILD_PKG_LICENSE"

    # Values that replace what the VCS probe would find,
    # e.g. BUILD_OVERRIDE_GIT_COMMIT_HASH
    OVERRIDE_PREFIX = "BUILD_OVERRIDE_"

    # Reproducible builds: fixes the build timestamp
    SOURCE_DATE_EPOCH = "SOURCE_DATE_EPOCH"


class Defaults:
    """Default values for configuration and probes."""

    ARTIFACT_NAME = "_built.py"

    # Searched in order, in the source directory and then its parents
    LOCK_FILES = ("uv.lock", "pylock.toml", "poetry.lock")

    SHORT_HASH_LENGTH = 8
    VCS_TIMEOUT = 10.0  # Seconds per git invocation

    TIME_FORMAT = "rfc3339"
    CAPABILITIES = ("vcs", "lock-file", "timestamp")

    # platformdirs application name for per-user defaults
    APP_NAME = "buildstamp"
    USER_SETTINGS_FILE = "settings.json"


# Checked in order; first match wins. A value of None means the variable
# only has to be set, otherwise it must equal the given value.
CI_PLATFORMS = (
    ("GITHUB_ACTIONS", None, "GitHub Actions"),
    ("GITLAB_CI", None, "GitLab CI"),
    ("TRAVIS", None, "Travis CI"),
    ("CIRCLECI", None, "CircleCI"),
    ("APPVEYOR", None, "AppVeyor"),
    ("TF_BUILD", None, "Azure Pipelines"),
    ("BUILDKITE", None, "Buildkite"),
    ("JENKINS_URL", None, "Jenkins"),
    ("TEAMCITY_VERSION", None, "TeamCity"),
    ("DRONE", None, "Drone"),
    ("BITBUCKET_BUILD_NUMBER", None, "Bitbucket Pipelines"),
    ("CODEBUILD_BUILD_ID", None, "AWS CodeBuild"),
    ("SEMAPHORE", None, "Semaphore"),
    ("CI_NAME", "codeship", "Codeship"),
    ("CI", None, "Generic CI"),
)
