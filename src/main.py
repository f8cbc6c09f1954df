from src.app import AppSettings, build_study_service

__all__ = ["main"]


def main() -> None:
    """Entry point for the application."""
    settings = AppSettings.from_env()
    build_study_service(settings)


if __name__ == "__main__":
    main()
