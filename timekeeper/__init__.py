# timekeeper/__init__.py

from flask import Flask

from timekeeper.config import Config


def create_app(test_config=None, scheduler=None) -> Flask:
    """
    Build the record-folding service.

    test_config overrides keys from Config. A scheduler running in the same
    process can be passed so /health reports its backoff state.
    """
    from timekeeper.database.ledger import SqlLedger
    from timekeeper.database.models import db
    from timekeeper.processor.handler import TimeKeeperHandler
    from timekeeper.routes import bp

    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    with app.app_context():
        db.create_all()

    app.extensions['timekeeper.handler'] = TimeKeeperHandler(SqlLedger())
    if scheduler is not None:
        app.extensions['timekeeper.scheduler'] = scheduler
    app.register_blueprint(bp)
    return app
