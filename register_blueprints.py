def register_blueprints(app):
    from modules.stock.routes import products_bp
    from modules.warehouses.routes import warehouses_bp
    from modules.transfers.routes import transfers_bp
    from modules.purchases.routes import purchases_bp
    from modules.fumigations.routes import fumigations_bp
    from modules.fields.routes import fields_bp
    from modules.users.routes import users_bp
    from modules.dashboard.routes import dashboard_bp
    from modules.storage.routes import files_bp

    # Stock
    app.register_blueprint(products_bp)
    app.register_blueprint(warehouses_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(purchases_bp)

    # Field work
    app.register_blueprint(fumigations_bp)
    app.register_blueprint(fields_bp)

    # Administration
    app.register_blueprint(users_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(files_bp)
