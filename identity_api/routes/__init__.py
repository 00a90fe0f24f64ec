"""Routes package for the identity API."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .auth import auth_bp
    from .assets import assets_bp
    from .settings import settings_bp
    from .geo import geo_bp
    from .push import push_bp
    from .notifications import notifications_bp
    from .admin import admin_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(assets_bp, url_prefix='/asset')
    app.register_blueprint(settings_bp, url_prefix='/settings')
    app.register_blueprint(geo_bp, url_prefix='/geo')
    app.register_blueprint(push_bp, url_prefix='/api/push')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')
    app.register_blueprint(admin_bp, url_prefix='/admin')
