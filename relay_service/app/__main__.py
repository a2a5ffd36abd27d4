import uvicorn
from dotenv import load_dotenv

from relay_service.core.config import load_settings


def main():
    load_dotenv()
    cfg = load_settings()
    api_cfg = cfg.get("app", {}).get("api", {})
    host = api_cfg.get("host", cfg.get("host", "127.0.0.1"))
    port = api_cfg.get("port", cfg.get("port", 8080))
    uvicorn.run("relay_service.app.http.api:create_app", host=host, port=port, reload=False, factory=True)


if __name__ == "__main__":
    main()
