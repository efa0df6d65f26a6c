import os

from app import create_app, db
from app.models import League, LeagueMember, Pilot, Prediction, Race, RaceResult, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Pilot": Pilot,
        "Race": Race,
        "RaceResult": RaceResult,
        "League": League,
        "LeagueMember": LeagueMember,
        "Prediction": Prediction,
    }


if __name__ == "__main__":
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 5000)),
        debug=app.config.get("DEBUG", False),
    )
