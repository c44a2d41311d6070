from endpoints.auction.auctionEndpoints import AuctionEndpoints

def setup_routes(app, engine, settings=None, clock=None):

    auctionEndpoints = AuctionEndpoints(engine, settings=settings, clock=clock)

    app.add_url_rule("/api/auction/<league_id>/setup", view_func=auctionEndpoints.setup, methods=["POST"])
    app.add_url_rule("/api/auction/<league_id>/state", view_func=auctionEndpoints.get_state, methods=["GET"])

    app.add_url_rule("/api/auction/<league_id>/rounds", view_func=auctionEndpoints.get_rounds, methods=["GET"])
    app.add_url_rule("/api/auction/<league_id>/rounds", view_func=auctionEndpoints.create_round, methods=["POST"])
    app.add_url_rule("/api/auction/<league_id>/rounds/<round_id>", view_func=auctionEndpoints.delete_round, methods=["DELETE"])
    app.add_url_rule("/api/auction/<league_id>/rounds/<round_id>/players", view_func=auctionEndpoints.import_players, methods=["POST"])
    app.add_url_rule("/api/auction/<league_id>/rounds/<round_id>/reset", view_func=auctionEndpoints.reset_round, methods=["POST"])
    app.add_url_rule("/api/auction/<league_id>/rounds/<round_id>/requeueUnsold", view_func=auctionEndpoints.requeue_unsold, methods=["POST"])

    app.add_url_rule("/api/auction/<league_id>/players", view_func=auctionEndpoints.get_players, methods=["GET"])
    app.add_url_rule("/api/auction/<league_id>/players/<player_id>", view_func=auctionEndpoints.update_player, methods=["PATCH"])

    app.add_url_rule("/api/auction/<league_id>/logs", view_func=auctionEndpoints.get_logs, methods=["GET"])
    app.add_url_rule("/api/auction/<league_id>/unsold", view_func=auctionEndpoints.get_unsold, methods=["GET"])
    app.add_url_rule("/api/auction/<league_id>/franchises", view_func=auctionEndpoints.get_franchises, methods=["GET"])

    app.add_url_rule("/api/auction/<league_id>/bid", view_func=auctionEndpoints.bid, methods=["POST"])
    app.add_url_rule("/api/auction/<league_id>/control", view_func=auctionEndpoints.control, methods=["POST"])

    app.add_url_rule("/api/auction/<league_id>", view_func=auctionEndpoints.reset, methods=["DELETE"])

    return auctionEndpoints
