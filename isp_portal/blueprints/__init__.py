"""Flask Blueprint registration."""


def register_blueprints(app):
    from .admin_bp import admin_bp
    from .network_bp import network_bp
    from .customer_bp import customer_bp

    app.register_blueprint(admin_bp)
    app.register_blueprint(network_bp)
    app.register_blueprint(customer_bp)
