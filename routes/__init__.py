"""routes package: central blueprint registration"""


def register_blueprints(app):
    from routes.admin import admin_bp
    from routes.enquiries import enquiries_bp
    from routes.gatekeeper import init_gatekeeper

    init_gatekeeper(app)
    app.register_blueprint(enquiries_bp)
    app.register_blueprint(admin_bp)
