import os
from pubscan import create_app

app = create_app()

if __name__ == '__main__':
    # Debug/reloader off by default to prevent double process & mid-scan restarts.
    debug_flag = os.environ.get('PUBSCAN_DEBUG_SERVER', '0') == '1'
    try:
        port = int(os.environ.get('PUBSCAN_PORT', '5000'))
    except ValueError:
        port = 5000
    routes = sorted({r.rule for r in app.url_map.iter_rules()})
    print(f"[pubscan] Route count={len(routes)} routes={routes}")
    app.run(host='0.0.0.0', port=port, debug=debug_flag, use_reloader=debug_flag)
