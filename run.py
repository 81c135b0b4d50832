from __future__ import annotations
import os
from stylio import create_app

def main() -> None:
    flask_app = create_app()

    if os.environ.get("SHOW_ROUTES", "0") in {"1", "true", "True"}:
        print("\n=== URL MAP ===")
        for rule in sorted(flask_app.url_map.iter_rules(), key=lambda r: r.rule):
            print(f"{','.join(sorted(rule.methods - {'HEAD', 'OPTIONS'})):<12} {rule.rule}")
        print("===============\n")

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in {"1", "true", "True"}
    flask_app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=debug_enabled)

if __name__ == "__main__":
    main()
