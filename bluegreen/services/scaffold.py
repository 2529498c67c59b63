"""Project Scaffolder — Spring Initializr download with a local fallback.

The project directory is always regenerated. The Initializr is asked for a
``web,actuator`` Maven project, first with the pinned Boot version, then
without it (the service rejects retired versions with HTTP 400). When it is
unreachable a minimal local project is written instead.
"""

from __future__ import annotations

import io
import logging
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from textwrap import dedent

import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

INITIALIZR_URL = "https://start.spring.io/starter.zip"


class ProjectSpec(BaseModel):
    """Coordinates of the generated application."""

    model_config = ConfigDict(frozen=True)

    artifact_id: str
    group_id: str = "com.example"
    package: str = "com.example.demo"
    boot_version: str = "3.3.4"
    java_release: str = "17"


def render_pom(spec: ProjectSpec) -> str:
    return dedent(f"""\
        <project xmlns="http://maven.apache.org/POM/4.0.0"
          xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
          xsi:schemaLocation="http://maven.apache.org/POM/4.0.0 https://maven.apache.org/xsd/maven-4.0.0.xsd">
          <modelVersion>4.0.0</modelVersion>
          <parent>
            <groupId>org.springframework.boot</groupId>
            <artifactId>spring-boot-starter-parent</artifactId>
            <version>{spec.boot_version}</version>
            <relativePath/>
          </parent>

          <groupId>{spec.group_id}</groupId>
          <artifactId>{spec.artifact_id}</artifactId>
          <version>1.0.0</version>
          <name>{spec.artifact_id}</name>
          <description>Spring Boot app</description>
          <properties>
            <java.version>{spec.java_release}</java.version>
          </properties>

          <dependencies>
            <dependency>
              <groupId>org.springframework.boot</groupId>
              <artifactId>spring-boot-starter-web</artifactId>
            </dependency>
            <dependency>
              <groupId>org.springframework.boot</groupId>
              <artifactId>spring-boot-starter-actuator</artifactId>
            </dependency>
            <dependency>
              <groupId>org.springframework.boot</groupId>
              <artifactId>spring-boot-starter-test</artifactId>
              <scope>test</scope>
            </dependency>
          </dependencies>

          <build>
            <plugins>
              <plugin>
                <groupId>org.springframework.boot</groupId>
                <artifactId>spring-boot-maven-plugin</artifactId>
              </plugin>
            </plugins>
          </build>
        </project>
        """)


def render_application(spec: ProjectSpec) -> str:
    return dedent(f"""\
        package {spec.package};

        import org.springframework.boot.SpringApplication;
        import org.springframework.boot.autoconfigure.SpringBootApplication;
        import org.springframework.web.bind.annotation.GetMapping;
        import org.springframework.web.bind.annotation.RestController;

        @SpringBootApplication
        @RestController
        public class DemoApplication {{
          @GetMapping("/")
          public String home() {{ return "It works! (Spring Boot)"; }}

          public static void main(String[] args) {{ SpringApplication.run(DemoApplication.class, args); }}
        }}
        """)


APPLICATION_PROPERTIES = dedent("""\
    management.endpoints.web.exposure.include=health
    management.endpoint.health.probes.enabled=true
    server.shutdown=graceful
    """)


class ProjectScaffolder:
    """Produces a buildable Maven project under ``workdir/<artifact_id>``.

    Parameters
    ----------
    client:
        HTTP client for the Initializr download.
    workdir:
        Parent directory of the generated project.
    """

    def __init__(self, client: httpx.Client, workdir: Path) -> None:
        self._client = client
        self._workdir = Path(workdir)

    def project_dir(self, spec: ProjectSpec) -> Path:
        return self._workdir / spec.artifact_id

    def scaffold(self, spec: ProjectSpec) -> tuple[Path, str]:
        """Regenerate the project; returns ``(project_dir, source)``.

        *source* is ``"initializr"`` or ``"local"``.
        """
        project_dir = self.project_dir(spec)
        if project_dir.exists():
            shutil.rmtree(project_dir)
        self._workdir.mkdir(parents=True, exist_ok=True)

        archive = self._download(spec, with_boot_version=True)
        if archive is None:
            logger.info("Initializr rejected bootVersion; retrying without it")
            archive = self._download(spec, with_boot_version=False)

        source = "local"
        if archive is not None:
            try:
                self._extract(archive, project_dir)
                source = "initializr"
            except (zipfile.BadZipFile, ValueError, FileNotFoundError) as exc:
                logger.warning("Unusable Initializr archive (%s); using local scaffold", exc)
                if project_dir.exists():
                    shutil.rmtree(project_dir)
        else:
            logger.warning("start.spring.io unreachable; using local scaffold")
        if source == "local":
            self._write_local(spec, project_dir)

        self._ensure_health_exposed(project_dir)
        logger.info("Scaffolded %s (%s)", project_dir, source)
        return project_dir, source

    def _download(self, spec: ProjectSpec, *, with_boot_version: bool) -> bytes | None:
        params = {
            "type": "maven-project",
            "language": "java",
            "baseDir": spec.artifact_id,
            "groupId": spec.group_id,
            "artifactId": spec.artifact_id,
            "name": spec.artifact_id,
            "packageName": spec.package,
            "javaVersion": spec.java_release,
            "dependencies": "web,actuator",
        }
        if with_boot_version:
            params["bootVersion"] = spec.boot_version
        try:
            response = self._client.get(INITIALIZR_URL, params=params, timeout=30.0)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.debug("Initializr request failed: %s", exc)
            return None
        return response.content

    def _extract(self, archive: bytes, project_dir: Path) -> None:
        """Unpack the zip, refusing members that escape the work dir."""
        root = self._workdir.resolve()
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            for member in zf.namelist():
                target = (self._workdir / PurePosixPath(member)).resolve()
                if root not in target.parents and target != root:
                    raise ValueError(f"Refusing to extract outside workdir: {member}")
            zf.extractall(self._workdir)
        if not project_dir.is_dir():
            raise FileNotFoundError(f"Archive did not contain {project_dir.name}/")
        mvnw = project_dir / "mvnw"
        if mvnw.exists():
            mvnw.chmod(0o755)

    def _write_local(self, spec: ProjectSpec, project_dir: Path) -> None:
        package_path = Path(*spec.package.split("."))
        main_dir = project_dir / "src" / "main" / "java" / package_path
        (project_dir / "src" / "test" / "java" / package_path).mkdir(parents=True)
        main_dir.mkdir(parents=True)
        (project_dir / "src" / "main" / "resources").mkdir(parents=True)
        (project_dir / "pom.xml").write_text(render_pom(spec), encoding="utf-8")
        (main_dir / "DemoApplication.java").write_text(
            render_application(spec), encoding="utf-8"
        )

    @staticmethod
    def _ensure_health_exposed(project_dir: Path) -> None:
        props = project_dir / "src" / "main" / "resources" / "application.properties"
        props.parent.mkdir(parents=True, exist_ok=True)
        existing = props.read_text(encoding="utf-8") if props.exists() else ""
        if "management.endpoints.web.exposure.include" not in existing:
            sep = "" if not existing or existing.endswith("\n") else "\n"
            props.write_text(existing + sep + APPLICATION_PROPERTIES, encoding="utf-8")
