"""Tests for the repository path classifier.

Covers:
- Course, module, section and attachment recognition
- Section key and order index derivation
- Exclusions (cicd, README, configured globs)
- Naming errors for misplaced descriptors and badly named markdown
- Whitespace in attachment paths
"""

from __future__ import annotations

import pytest

from course_sync.errors import NamingError, ValidationError
from course_sync.sync.classifier import PathClassifier, classify, is_excluded
from course_sync.sync.models import ContentKind


class TestClassifyKinds:
    """Tests for recognised content kinds."""

    def test_course_descriptor(self):
        result = classify("/Courses/python101/course.json")
        assert result.kind is ContentKind.COURSE
        assert result.key == "python101"

    def test_module_descriptor(self):
        result = classify("/Modules/intro/module.json")
        assert result.kind is ContentKind.MODULE
        assert result.key == "intro"

    def test_section_key_and_order(self):
        result = classify("/Modules/intro/01-welcome.md")
        assert result.kind is ContentKind.SECTION
        assert result.key == "intro-welcome"
        assert result.order_index == 1
        assert result.module_id == "intro"

    def test_section_key_is_lowercase(self):
        result = classify("/Modules/Intro/10-Getting_Started.md")
        assert result.key == "intro-getting_started"
        assert result.order_index == 10
        assert result.module_id == "Intro"

    def test_plain_integer_order(self):
        assert classify("/Modules/intro/7-wrapup.md").order_index == 7

    @pytest.mark.parametrize(
        "path",
        [
            "/Modules/intro/.attachments/diagram.png",
            "/Modules/intro/.attachments/photo.JPG",
            "/Modules/intro/.attachments/photo.jpeg",
        ],
    )
    def test_attachments(self, path):
        result = classify(path)
        assert result.kind is ContentKind.ATTACHMENT
        assert result.key == path

    @pytest.mark.parametrize(
        "path",
        [
            "/azure-pipelines.yml",
            "/Modules/intro/notes.txt",
            "/Courses/python101/cover.svg",
        ],
    )
    def test_other_files_are_ignored(self, path):
        assert classify(path).kind is ContentKind.IGNORED


class TestExclusions:
    """Tests for paths that are never synchronised."""

    @pytest.mark.parametrize(
        "path",
        [
            "/cicd/deploy.md",
            "/Modules/intro/cicd/01-x.md",
            "/README.md",
            "/Modules/intro/README.md",
            "/Modules/intro/README/screenshot.png",
        ],
    )
    def test_excluded_paths(self, path):
        assert is_excluded(path)
        assert classify(path).kind is ContentKind.IGNORED

    def test_configured_globs(self):
        classifier = PathClassifier(exclude=["/Modules/drafts/*"])
        assert (
            classifier.classify("/Modules/drafts/01-wip.md").kind
            is ContentKind.IGNORED
        )
        assert (
            classifier.classify("/Modules/intro/01-welcome.md").kind
            is ContentKind.SECTION
        )

    def test_glob_does_not_hide_naming_errors_elsewhere(self):
        classifier = PathClassifier(exclude=["/Modules/drafts/*"])
        with pytest.raises(NamingError):
            classifier.classify("/Modules/intro/welcome.md")


class TestNamingErrors:
    """Tests for paths that must abort the run."""

    @pytest.mark.parametrize(
        "path",
        [
            "/Modules/intro/welcome.md",
            "/Modules/intro/01_welcome.md",
            "/Modules/intro/01-wel come.md",
            "/Modules/intro/sub/01-welcome.md",
            "/Docs/01-welcome.md",
        ],
    )
    def test_bad_section_names(self, path):
        with pytest.raises(NamingError) as exc_info:
            classify(path)
        assert exc_info.value.path == path
        assert path in exc_info.value.problems[0]

    def test_naming_error_is_validation_error(self):
        with pytest.raises(ValidationError):
            classify("/Modules/intro/welcome.md")

    def test_attachment_with_space(self):
        path = "/Modules/intro/.attachments/diagram one.png"
        with pytest.raises(NamingError) as exc_info:
            classify(path)
        assert "whitespace" in exc_info.value.reason

    def test_misplaced_course_descriptor(self):
        with pytest.raises(NamingError):
            classify("/Courses/python101/extra/course.json")

    def test_misplaced_module_descriptor(self):
        with pytest.raises(NamingError):
            classify("/Courses/python101/module.json")

    def test_course_id_with_space(self):
        with pytest.raises(NamingError):
            classify("/Courses/python 101/course.json")
