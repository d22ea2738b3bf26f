"""motorsite entrypoint.

Run with:
  python -m motorsite
"""

import os
import uvicorn

def main() -> None:
    host = os.getenv("MOTOR_HOST", "0.0.0.0")
    port = int(os.getenv("MOTOR_PORT", "8000"))
    reload = os.getenv("MOTOR_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("motorsite.app:create_app", factory=True, host=host, port=port, reload=reload)

if __name__ == "__main__":
    main()
