from endpoints.franchise.franchiseEndpoints import FranchiseEndpoints

def setup_routes(app, engine, settings=None):

    franchiseEndpoints = FranchiseEndpoints(engine, settings=settings)

    app.add_url_rule("/api/league/<league_id>/franchises", view_func=franchiseEndpoints.list_franchises, methods=["GET"])
    app.add_url_rule("/api/league/<league_id>/franchises", view_func=franchiseEndpoints.create_franchise, methods=["POST"])
    app.add_url_rule("/api/league/<league_id>/franchises/<franchise_id>", view_func=franchiseEndpoints.update_franchise, methods=["PATCH"])
    app.add_url_rule("/api/league/<league_id>/franchises/<franchise_id>", view_func=franchiseEndpoints.delete_franchise, methods=["DELETE"])
